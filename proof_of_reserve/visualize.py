"""
Visualize the Merkle Tree of the reserve commitment

Renders the tree either as a Mermaid flowchart (served by the API for
debugging) or as a coloured text view for the terminal.
"""

import re
from typing import Dict

from proof_of_reserve.core.merkle import MerkleTree, Node

_ANSI_RE = re.compile(r'\x1b\[[0-9;]*[mK]')


# ANSI color codes for terminal output
class Colors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    WARNING = '\033[93m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'


def short_hash(hash_str: str, length: int = 8) -> str:
    """Shorten a hash string for display."""
    if not hash_str:
        return ""

    if len(hash_str) <= length + 2:
        return hash_str

    return f"{hash_str[:length//2]}...{hash_str[-length//2:]}"


def strip_colors(text: str) -> str:
    return _ANSI_RE.sub('', text)


def render_mermaid(tree: MerkleTree) -> str:
    """
    Render the tree as a Mermaid ``graph TD`` flowchart.

    Node ids are assigned in pre-order. A node paired with itself is drawn
    once with two edges from its parent.
    """
    lines = ["graph TD"]
    if tree.root_node is None:
        return "\n".join(lines)

    ids: Dict[int, str] = {}
    for node in _walk(tree.root_node):
        node_id = f"N{len(ids)}"
        ids[id(node)] = node_id

        label = short_hash(node.hex, 16)
        if node.is_leaf:
            label += node.record.label()
        lines.append(f'    {node_id}["{label}"]')

    for node in _walk(tree.root_node):
        for child in (node.left, node.right):
            if child is not None:
                lines.append(f"    {ids[id(node)]} --> {ids[id(child)]}")

    return "\n".join(lines)


def _walk(root: Node):
    """Yield each distinct node once, in pre-order."""
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        for child in (node.right, node.left):
            if child is not None:
                stack.append(child)


class MerkleTreeVisualizer:
    """Class for rendering a text view of the reserve Merkle tree."""

    def __init__(self, max_depth: int = 10):
        self.max_depth = max_depth  # Maximum depth to visualize

    def visualize_tree(self, tree: MerkleTree) -> str:
        """
        Generate a text-based visualization of the Merkle tree.

        Levels are printed from the root down, stopping after ``max_depth``
        levels below the root.
        """
        if tree.root_node is None:
            return "Empty tree"

        lines = []

        # Add header
        lines.append(f"{Colors.HEADER}{Colors.BOLD}Merkle Tree Visualization{Colors.ENDC}")
        lines.append(f"Size: {tree.size} records")
        lines.append(f"Depth: {tree.height} levels")
        lines.append(f"Root: {short_hash(tree.root())}")

        levels = tree.levels()
        max_display_depth = min(tree.height, self.max_depth)

        for depth in range(max_display_depth + 1):
            level = tree.height - depth
            if depth == 0:
                level_name = "Root"
            elif level == 0:
                level_name = "Leaf Nodes (Records)"
            else:
                level_name = f"Level {level}"

            lines.append(f"\n{Colors.UNDERLINE}{level_name}{Colors.ENDC}")

            for pos, node in enumerate(levels[level]):
                if node.is_leaf:
                    record = node.record
                    node_str = (
                        f"User #{record.id} | balance {record.balance} | "
                        f"{short_hash(node.hex)}"
                    )
                else:
                    node_str = short_hash(node.hex)
                indent = ' ' * (pos * 2)
                lines.append(f"{indent}{Colors.OKBLUE}{node_str}{Colors.ENDC}")

        if tree.height > max_display_depth:
            lines.append(
                f"\n{Colors.WARNING}Note: Tree truncated at depth {max_display_depth} "
                f"(total depth: {tree.height}){Colors.ENDC}"
            )

        return '\n'.join(lines)
