from enum import IntEnum


class EResult(IntEnum):
    """Steam result codes. Only the values the archiver reasons about are listed."""
    Invalid = 0
    OK = 1
    Fail = 2
    NoConnection = 3
    InvalidPassword = 5
    LoggedInElsewhere = 6
    InvalidProtocolVer = 7
    InvalidParam = 8
    FileNotFound = 9
    Busy = 10
    InvalidState = 11
    AccessDenied = 15
    Timeout = 16
    Banned = 17
    AccountNotFound = 18
    InvalidSteamID = 19
    ServiceUnavailable = 20
    NotLoggedOn = 21
    Pending = 22
    InsufficientPrivilege = 24
    LimitExceeded = 25
    Revoked = 26
    Expired = 27
    IPNotFound = 31
    LogonSessionReplaced = 34
    ConnectFailed = 35
    HandshakeFailed = 36
    IOFailure = 37
    RemoteDisconnect = 38
    Blocked = 40
    Ignored = 41
    AccountDisabled = 43
    AccountNotFeatured = 45
    TryAnotherCM = 48
    Suspended = 51
    Cancelled = 52
    DataCorruption = 53
    DiskFull = 54
    RemoteCallFailed = 55
    RemoteFileConflict = 60
    AccountLogonDenied = 63
    InvalidLoginAuthCode = 65
    AccountLogonDeniedNoMailSent = 66
    ExpiredLoginAuthCode = 71
    AccountLockedDown = 73
    AccountLogonDeniedVerifiedEmailRequired = 74
    BadResponse = 76
    RateLimitExceeded = 84
    AccountLoginDeniedNeedTwoFactor = 85
    AccountLoginDeniedThrottle = 87
    TwoFactorCodeMismatch = 88
    TwoFactorActivationCodeMismatch = 89

    @classmethod
    def _missing_(cls, value):
        # unknown codes from newer clients should not crash classification.
        return cls.Invalid
