# src/image_transform/core/error_handling.py

import logging
from contextlib import contextmanager
from typing import Iterator, List, Dict, Optional, Type

from .exceptions import ImageTransformError, ProcessingError


@contextmanager
def stage_guard(
    stage: str, error_cls: Type[ProcessingError] = ProcessingError
) -> Iterator[None]:
    """
    Convert foreign exceptions raised inside a pipeline stage into
    ``error_cls`` carrying the stage name. Package errors pass through.
    """
    try:
        yield
    except ImageTransformError:
        raise
    except Exception as e:
        logger = logging.getLogger(f"image-transform.stages.{stage}")
        logger.debug(f"Stage '{stage}' raised {type(e).__name__}: {e}", exc_info=True)
        raise error_cls(f"{type(e).__name__}: {e}", stage=stage) from e


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation", logger: Optional[logging.Logger] = None):
        self.operation_name = operation_name
        self.errors: List[Dict[str, str]] = []
        self.logger = logger or logging.getLogger(
            "image-transform." + self.__class__.__name__
        )

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item "
                    f"'{error_detail['item']}': {error_detail['error']}"
                )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Exceptions not reported through add_error propagate.
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item within the 'with' block.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): A string identifying the item that failed.
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")
