"""
Error taxonomy for the inference bridge.

Every failure raised by the core is a local, synchronous data error of the
call that triggered it. None of them are retried, and none leave a partially
populated result behind. All derive from ValueError so callers that only
care about "bad input" can catch that.
"""


class D2goBridgeError(ValueError):
    """Base class for all data errors raised by the bridge."""


class MalformedFrame(D2goBridgeError):
    """Camera planes are inconsistent with the declared width/height/stride."""


class TensorShapeMismatch(D2goBridgeError):
    """An output tensor length disagrees with the instance count or stride."""


class LabelIndexOutOfRange(D2goBridgeError):
    """A decoded label id has no corresponding class name."""


class InvalidDimensions(D2goBridgeError):
    """Zero or negative width/height supplied to the bitmap codec."""


class MalformedBitmap(D2goBridgeError):
    """Bitmap bytes could not be parsed back into a pixel buffer."""
