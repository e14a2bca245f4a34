from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class RepositoryTransport(ABC):
    """The version-control primitives the account store is built on.

    Keys are slash separated paths inside the head tree. Writes are staged until `commit`, and tag changes are local until `push`.
    Implementations are not safe for concurrent writers; the account store funnels every mutation through a single lock. Reads may run at any time.
    Every failure of the backing store must surface as a StorageError.
    """

    @abstractmethod
    async def read_blob(self, key: str, revision: Optional[str] = None) -> Optional[bytes]:
        """Content of `key` in the working head, or in `revision` (a commit id or tag name) if given. None if absent."""
        pass

    @abstractmethod
    async def list_blobs(self, prefix: str) -> List[str]:
        """All keys in the working head under the `prefix` directory."""
        pass

    @abstractmethod
    async def write_blob(self, key: str, data: bytes) -> bool:
        """Stage `data` at `key`, replacing what is there. Returns False if the content was already identical."""
        pass

    async def write_blob_if_absent(self, key: str, data: bytes) -> bool:
        if await self.read_blob(key) is not None:
            return False
        return await self.write_blob(key, data)

    @abstractmethod
    async def delete_blob(self, key: str) -> bool:
        pass

    @abstractmethod
    async def head(self) -> Optional[str]:
        pass

    @abstractmethod
    async def commit(self, message: str) -> Optional[str]:
        """Commit everything staged. Returns the new head id, or None if nothing was staged."""
        pass

    @abstractmethod
    async def commit_tree(self, files: Dict[str, bytes], message: str) -> str:
        """Write `files` as a parentless commit that the head does not point to, and return its id.

        Nothing keeps such a commit alive except a tag, so deleting its last tag makes it garbage.
        """
        pass

    @abstractmethod
    async def push(self):
        """Publish the branch and every tag created or deleted since the last push."""
        pass

    async def commit_and_push(self, message: str) -> Optional[str]:
        commit_id = await self.commit(message)
        await self.push()
        return commit_id

    @abstractmethod
    async def create_tag(self, name: str, point_to: Optional[str] = None):
        """Create tag `name` at commit `point_to`, or at the head if not given."""
        pass

    @abstractmethod
    async def list_tags(self) -> List[str]:
        pass

    @abstractmethod
    async def delete_tag(self, name: str):
        pass
