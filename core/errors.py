"""
Error Taxonomy

Every error is raised at the point of detection; nothing here is retried.

- BlockValidationError: observation fails a block check (recoverable)
- UnsupportedBlockCombination: no model/loss registered for a block pair
- GrouperResolutionError: no grouper given and none can be derived
- UngroupedParameterError: trainable parameter outside every group
- BlockSizeMismatch: loss requested between incompatible blocks
"""


class FastBlocksError(Exception):
    """Base class for all fastblocks errors."""
    pass


class BlockValidationError(FastBlocksError, ValueError):
    """Raised when an observation is not valid for a block."""

    def __init__(self, block, obs, message: str = ""):
        from ..blocks.block import summary

        self.block = block
        self.obs = obs
        self.message = message
        text = f"Invalid observation for `{summary(block)}`: {_describe(obs)}"
        if message:
            text += f"\n{message}"
        super().__init__(text)


class UnsupportedBlockCombination(FastBlocksError, TypeError):
    """Raised when a dispatcher has no entry for an (inblock, outblock) pair."""

    def __init__(self, inblock, outblock, what: str = "blockmodel"):
        from ..blocks.block import summary

        self.inblock = inblock
        self.outblock = outblock
        super().__init__(
            f"Unsupported block combination for `{what}`: "
            f"({summary(inblock)}, {summary(outblock)})"
        )


class GrouperResolutionError(FastBlocksError, TypeError):
    """Raised when a parameter grouper cannot be derived for a model."""
    pass


class UngroupedParameterError(FastBlocksError, KeyError):
    """Raised when a trainable parameter is not covered by any group."""

    def __str__(self):
        # KeyError would repr() the message
        return str(self.args[0]) if self.args else ""


class BlockSizeMismatch(FastBlocksError, ValueError):
    """Raised when a loss function is requested for blocks of different sizes."""
    pass


def _describe(obs, limit: int = 60) -> str:
    """Short description of an observation: type plus truncated repr."""
    text = repr(obs)
    if len(text) > limit:
        text = text[:limit - 3] + "..."
    return f"{type(obs).__name__} {text}"
