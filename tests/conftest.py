import pytest

from imagegen import rect_image


@pytest.fixture
def icon():
    """64x64 icon with an opaque square in the middle."""
    return rect_image(64, 64, (20, 20, 43, 43), color=(40, 40, 40))
