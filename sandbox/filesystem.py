#!/usr/bin/env python3
"""
Virtual Filesystem - In-memory copy-on-write tree for the sandbox shell
"""

from typing import Dict, List, Optional, Sequence, Union


HOME_PATH = '/home/sandbox'

README_CONTENT = (
    'Welcome to Sandbox OS.\n'
    'This is a temporary isolated environment.\n'
    'Type "help" to see available commands.'
)


class FileNode:
    """A regular file holding text content"""

    is_directory = False

    def __init__(self, content: str = ""):
        self.content = content

    def __eq__(self, other) -> bool:
        return isinstance(other, FileNode) and other.content == self.content

    def __repr__(self) -> str:
        return f"FileNode({self.content!r})"


class DirNode:
    """A directory mapping child names to nodes"""

    is_directory = True

    def __init__(self, contents: Optional[Dict[str, 'Node']] = None):
        self.contents: Dict[str, Node] = dict(contents) if contents else {}

    def child(self, name: str) -> Optional['Node']:
        """Get a direct child by name"""
        return self.contents.get(name)

    def names(self) -> List[str]:
        """Child names in lexicographic order"""
        return sorted(self.contents)

    def __eq__(self, other) -> bool:
        return isinstance(other, DirNode) and other.contents == self.contents

    def __repr__(self) -> str:
        return f"DirNode({self.contents!r})"


Node = Union[FileNode, DirNode]


def split_path(path: str) -> List[str]:
    """Split a path string into its non-empty segments"""
    return [part for part in path.split('/') if part]


def resolve_path(current_path: str, target_path: str) -> List[str]:
    """Resolve target_path against current_path into canonical segments.

    Absolute targets ignore current_path. '.' and empty segments are
    skipped, '..' pops one segment and is a no-op at the root.
    """
    if not target_path:
        return split_path(current_path)

    if target_path.startswith('/'):
        parts = target_path.split('/')
    else:
        parts = current_path.split('/') + target_path.split('/')

    resolved: List[str] = []
    for part in parts:
        if part in ('', '.'):
            continue
        if part == '..':
            if resolved:
                resolved.pop()
        else:
            resolved.append(part)
    return resolved


def format_path(segments: Sequence[str]) -> str:
    """Render segments as an absolute path; the root is '/'"""
    return '/' + '/'.join(segments)


def get_node(root: DirNode, segments: Sequence[str]) -> Optional[Node]:
    """Walk from root along segments, returning None if anything is missing"""
    current: Node = root
    for name in segments:
        if not current.is_directory:
            return None
        child = current.child(name)
        if child is None:
            return None
        current = child
    return current


def clone_tree(node: Node) -> Node:
    """Deep copy of a whole subtree"""
    if not node.is_directory:
        return FileNode(node.content)
    return DirNode({name: clone_tree(child) for name, child in node.contents.items()})


def _replace_along(directory: DirNode, segments: Sequence[str],
                   node: Optional[Node]) -> DirNode:
    """Copy directory and every directory on the way down to the edit"""
    name = segments[0]
    contents = dict(directory.contents)

    if len(segments) == 1:
        if node is None:
            contents.pop(name, None)
        else:
            contents[name] = node
        return DirNode(contents)

    child = directory.child(name)
    if child is None or not child.is_directory:
        raise ValueError(f"parent of {format_path(segments)} is not a directory")
    contents[name] = _replace_along(child, segments[1:], node)
    return DirNode(contents)


def with_node(root: DirNode, segments: Sequence[str], node: Node) -> DirNode:
    """Return a new root with node placed at segments.

    Only the directories from the root to the parent are copied; every
    other subtree is shared with the old root.
    """
    if not segments:
        raise ValueError("cannot replace the root directory")
    return _replace_along(root, segments, node)


def without_node(root: DirNode, segments: Sequence[str]) -> DirNode:
    """Return a new root with the node at segments removed"""
    if not segments:
        raise ValueError("cannot remove the root directory")
    return _replace_along(root, segments, None)


def build_initial_filesystem() -> DirNode:
    """Build the seed layout every sandbox starts from"""
    return DirNode({
        'home': DirNode({
            'sandbox': DirNode({
                'readme.txt': FileNode(README_CONTENT),
                'projects': DirNode(),
            }),
        }),
        'etc': DirNode(),
        'var': DirNode(),
        'usr': DirNode(),
        'bin': DirNode(),
    })


# Nodes are never mutated after construction, so one seed serves every reset
INITIAL_FS = build_initial_filesystem()
