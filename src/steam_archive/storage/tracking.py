from dataclasses import dataclass, field
from typing import List

from .records import ManifestKey


@dataclass
class TrackingStatus:
    """Counters for one archival pass. Rendered into the step summary at the end of the pass."""
    accounts_processed: int = 0
    accounts_written: int = 0
    accounts_unchanged: int = 0
    accounts_removed: int = 0
    accounts_failed: int = 0
    manifests_written: int = 0
    manifests_skipped: int = 0
    manifests_failed: int = 0
    tags_pruned: int = 0
    pushes_failed: int = 0
    new_manifests: List[ManifestKey] = field(default_factory=list)

    def render(self) -> str:
        lines = [
            "## Archive summary",
            "",
            "| | count |",
            "|---|---|",
            f"| accounts processed | {self.accounts_processed} |",
            f"| accounts written | {self.accounts_written} |",
            f"| accounts unchanged | {self.accounts_unchanged} |",
            f"| accounts removed | {self.accounts_removed} |",
            f"| accounts failed | {self.accounts_failed} |",
            f"| manifests written | {self.manifests_written} |",
            f"| manifests already archived | {self.manifests_skipped} |",
            f"| manifests failed | {self.manifests_failed} |",
            f"| tags pruned | {self.tags_pruned} |",
            f"| failed pushes | {self.pushes_failed} |",
        ]
        if self.new_manifests:
            lines += ["", "### New manifests", "", "| app | depot | manifest |", "|---|---|---|"]
            lines += [f"| {key.app_id} | {key.depot_id} | {key.manifest_id} |" for key in sorted(self.new_manifests)]
        return "\n".join(lines) + "\n"
