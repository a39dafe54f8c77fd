"""
Exception and warning types raised by the haplotig sorting pipeline.
"""


class HaplotigSorterError(Exception):
    """
    Base class for all run-level failures.
    """


class InputFormatError(HaplotigSorterError):
    """
    Raised when an input file holds no usable records.
    Individual malformed records are skipped and counted instead.
    """


class ConfigurationError(HaplotigSorterError):
    """
    Raised when a parameter is outside its documented range.
    """


class ExternalToolFailure(HaplotigSorterError):
    """
    Raised when an external aligner exits with an error or produces no output.
    """

    def __init__(self, tool: str, message: str):
        super().__init__(tool, message)
        self.tool = tool
        self.message = message

    def __str__(self):
        return f"{self.tool}: {self.message}"


class EmptyResultWarning(UserWarning):
    """
    Issued when a stage produces nothing to pass on (no contigs, no candidate edges).
    """
