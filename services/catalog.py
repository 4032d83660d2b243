"""Static catalog of historical figures available for conversation."""

from __future__ import annotations

from typing import Dict, List, Optional

from models.figure import Figure

EINSTEIN_VOICE_ID = "ZQe5CZNOzWyzPSCn5a3c"

FIGURES: List[Figure] = [
    Figure(
        id="einstein",
        display_name="ALBERT EINSTEIN",
        portrait_ref="https://res.cloudinary.com/dorfwjwze/image/upload/v1747107248/Half-body_Portrait_Of_A_Young_Man_With_Pompadour_Hair_frdcy2.png",
        intro_video_ref="https://res.cloudinary.com/dorfwjwze/video/upload/v1747108225/2d1125d6-a320-49b5-8bcd-f5d8836f9c45_d9aajf.mp4",
        is_default=True,
        voice_id=EINSTEIN_VOICE_ID,
    ),
    Figure(
        id="aurelius",
        display_name="MARCUS AURELIUS",
        portrait_ref="https://res.cloudinary.com/dorfwjwze/image/upload/v1747150507/Realistic_Digital_Portrait_of_an_Older_Man_Resembling_Marcus_Aurelius_fbu2wj.png",
    ),
    Figure(
        id="curie",
        display_name="MARIE CURIE",
        portrait_ref="https://res.cloudinary.com/dorfwjwze/image/upload/v1747149812/MarietCurie_purryw.jpg",
    ),
    Figure(
        id="lincoln",
        display_name="ABRAHAM LINCOLN",
        portrait_ref="https://res.cloudinary.com/dorfwjwze/image/upload/v1747149919/artbreeder-poser_3_qzyzgw.jpg",
    ),
]

_BY_ID: Dict[str, Figure] = {figure.id: figure for figure in FIGURES}


def get_figure(figure_id: Optional[str]) -> Optional[Figure]:
    """Return the figure with ``figure_id`` or None when it is not in the catalog."""
    if not figure_id:
        return None
    return _BY_ID.get(figure_id)


def get_default_figure() -> Figure:
    """Return the figure selected by default, falling back to the first entry."""
    return next((figure for figure in FIGURES if figure.is_default), FIGURES[0])


def figure_ids() -> List[str]:
    return [figure.id for figure in FIGURES]
