"""
Branch filtering and step sectioning.

Sections are the scheduling units of a pipeline: a group of steps run as
sibling containers of one Pod, or a single manual approval block.
"""

from typing import List, Optional, Sequence

from controller.src.models.pipeline import (
    Block,
    BlockSection,
    Section,
    Step,
    StepNode,
    StepsSection,
    Wait,
)

def includes(node: StepNode, branch: str) -> bool:
    """Whether a node runs on the given branch."""
    if isinstance(node, Wait):
        return True

    branch_filter = node.branch
    if branch_filter is None or branch_filter == branch:
        return True

    return branch_filter.startswith("!") and branch_filter[1:] != branch

def build_sections(nodes: Sequence[StepNode], branch: str) -> List[Section]:
    """
    Group branch-filtered nodes into ordered sections.

    A block always gets a section of its own and a wait forces the next step
    into a new section. Consecutive steps share a section, and each step is
    inserted at the front of its group, so steps within a section end up in
    reverse declaration order.
    """
    sections: List[Section] = []
    previous_was_wait = False

    for node in nodes:
        if not includes(node, branch):
            continue

        if isinstance(node, Block):
            sections.append(BlockSection(block=node))
            previous_was_wait = False
        elif isinstance(node, Wait):
            previous_was_wait = True
        elif isinstance(node, Step):
            last = sections[-1] if sections else None
            if isinstance(last, StepsSection) and not previous_was_wait:
                last.steps.insert(0, node)
            else:
                sections.append(StepsSection(steps=[node]))
            previous_was_wait = False

    return sections

def select_section(sections: Sequence[Section], index: int) -> Optional[Section]:
    """Section at `index`, or None once the pipeline has run out of sections."""
    if 0 <= index < len(sections):
        return sections[index]
    return None
