""" memory_transport.py

An in-process stand-in for a git repository. Objects are content addressed, commits are snapshots of path -> blob id, and tags are plain name -> commit id references.
It exists for tests and dry runs, but it honours the same reachability rules as git so retention behaviour can be checked against it.
"""
import hashlib
import logging
from itertools import count
from typing import Dict, List, NamedTuple, Optional, Set

from ..errors import StorageError
from .transport import RepositoryTransport

logger = logging.getLogger(__name__)


def _object_id(kind: str, data: bytes) -> str:
    return hashlib.sha1(kind.encode("ascii") + b"\0" + data).hexdigest()


class MemoryCommit(NamedTuple):
    parent: Optional[str]
    tree: Dict[str, str]
    message: str


class MemoryTransport(RepositoryTransport):

    def __init__(self):
        self._objects: Dict[str, bytes] = {}
        self._commits: Dict[str, MemoryCommit] = {}
        self._index: Dict[str, str] = {}
        self._head: Optional[str] = None
        self._tags: Dict[str, str] = {}
        self._pending_tag_refs: List[str] = []
        self._sequence = count()
        self.fail_pushes = False
        self.commit_count = 0
        self.push_count = 0
        self.published_tags: Set[str] = set()

    def _store_object(self, data: bytes) -> str:
        object_id = _object_id("blob", data)
        self._objects[object_id] = data
        return object_id

    def _resolve(self, revision: str) -> Optional[MemoryCommit]:
        commit_id = self._tags.get(revision, revision)
        return self._commits.get(commit_id)

    def _head_tree(self) -> Dict[str, str]:
        return self._commits[self._head].tree if self._head is not None else {}

    async def read_blob(self, key: str, revision: Optional[str] = None) -> Optional[bytes]:
        if revision is None:
            tree = self._index
        else:
            commit = self._resolve(revision)
            if commit is None:
                return None
            tree = commit.tree
        object_id = tree.get(key)
        return self._objects.get(object_id) if object_id is not None else None

    async def list_blobs(self, prefix: str) -> List[str]:
        directory = prefix.rstrip("/") + "/"
        return sorted(key for key in self._index if key.startswith(directory))

    async def write_blob(self, key: str, data: bytes) -> bool:
        object_id = self._store_object(data)
        if self._index.get(key) == object_id:
            return False
        self._index[key] = object_id
        return True

    async def delete_blob(self, key: str) -> bool:
        return self._index.pop(key, None) is not None

    async def head(self) -> Optional[str]:
        return self._head

    def _new_commit(self, parent: Optional[str], tree: Dict[str, str], message: str) -> str:
        listing = "\n".join(f"{path} {oid}" for path, oid in sorted(tree.items()))
        commit_id = _object_id("commit", f"{parent}\n{next(self._sequence)}\n{message}\n{listing}".encode("utf-8"))
        self._commits[commit_id] = MemoryCommit(parent, dict(tree), message)
        self.commit_count += 1
        return commit_id

    async def commit(self, message: str) -> Optional[str]:
        if self._index == self._head_tree():
            return None
        self._head = self._new_commit(self._head, self._index, message)
        return self._head

    async def commit_tree(self, files: Dict[str, bytes], message: str) -> str:
        tree = {path: self._store_object(data) for path, data in files.items()}
        return self._new_commit(None, tree, message)

    async def push(self):
        if self.fail_pushes:
            raise StorageError("push rejected by remote")
        for ref in self._pending_tag_refs:
            if ref.startswith(":"):
                self.published_tags.discard(ref[1:])
            else:
                self.published_tags.add(ref)
        self._pending_tag_refs.clear()
        self.push_count += 1

    async def create_tag(self, name: str, point_to: Optional[str] = None):
        target = point_to or self._head
        if target is None or target not in self._commits:
            raise StorageError(f"cannot tag {name}: unknown commit {target}")
        if name in self._tags:
            raise StorageError(f"tag {name} already exists")
        self._tags[name] = target
        self._pending_tag_refs.append(name)

    async def list_tags(self) -> List[str]:
        return sorted(self._tags)

    async def delete_tag(self, name: str):
        if self._tags.pop(name, None) is None:
            raise StorageError(f"tag {name} not found")
        self._pending_tag_refs.append(f":{name}")

    def reachable_objects(self) -> Set[str]:
        reachable: Set[str] = set(self._index.values())
        starts = [self._head] + list(self._tags.values())
        seen: Set[str] = set()
        for start in starts:
            commit_id = start
            while commit_id is not None and commit_id not in seen:
                seen.add(commit_id)
                commit = self._commits[commit_id]
                reachable.update(commit.tree.values())
                commit_id = commit.parent
        return reachable

    def gc(self) -> int:
        """Drop every blob no ref can reach, the way `git gc --prune=now` would. Returns the number dropped."""
        reachable = self.reachable_objects()
        garbage = [oid for oid in self._objects if oid not in reachable]
        for oid in garbage:
            del self._objects[oid]
        logger.debug("gc dropped %d unreachable objects", len(garbage))
        return len(garbage)

    def has_object(self, data: bytes) -> bool:
        return _object_id("blob", data) in self._objects
