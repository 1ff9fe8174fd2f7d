"""Colored pipeline logger — ANSI-colored console output for document ingestion.

Each ingestion stage gets its own color so a document can be followed from
blob download to READY in a busy terminal.

Color scheme:
    Green   — Download / Store / Complete
    Yellow  — Text extraction
    Cyan    — Chunking
    Magenta — Embedding
    Red     — Errors
    Gray    — Details
"""

import logging
import time
from contextlib import contextmanager
from typing import Any


class _Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


# ── Pipeline stages: (label, color, marker) ──────────────────────────

class PipelineStage:
    DOWNLOAD = ("DOWNLOAD", _Colors.GREEN, ">>")
    EXTRACT = ("EXTRACT", _Colors.YELLOW, "::")
    CHUNK = ("CHUNK", _Colors.CYAN, "##")
    EMBED = ("EMBED", _Colors.MAGENTA, "~~")
    STORE = ("STORE", _Colors.GREEN, "[]")
    ERROR = ("ERROR", _Colors.RED, "!!")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "OK")


def _format_kwargs(kwargs: dict[str, Any]) -> str:
    return " | ".join(f"{k}={v}" for k, v in kwargs.items())


class PipelineLogger:
    """Stage-colored logger used by the ingestion pipeline.

    Usage:
        plog = PipelineLogger("IngestionService")
        plog.step_start(PipelineStage.EXTRACT, "Extracting text", mime_type="application/pdf")
        plog.step_complete(PipelineStage.EXTRACT, "Extracted 14,201 chars")
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        label, color, marker = stage
        formatted = f"{color}{_Colors.BOLD}{marker} [{label}]{_Colors.RESET} {color}{message}{_Colors.RESET}"
        if kwargs:
            formatted += f" {_Colors.GRAY}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.info(formatted)

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        label, color, marker = stage
        formatted = f"{color}{marker} [{label}]{_Colors.RESET} {_Colors.GREEN}done: {message}{_Colors.RESET}"
        if kwargs:
            formatted += f" {_Colors.GRAY}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.info(formatted)

    def step_error(
        self, stage: tuple[str, str, str], message: str, error: BaseException | None = None
    ) -> None:
        label, _, marker = stage
        formatted = f"{_Colors.RED}{_Colors.BOLD}{marker} [{label}]{_Colors.RESET} {_Colors.RED}{message}{_Colors.RESET}"
        if error is not None:
            formatted += f" {_Colors.DIM}-> {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        formatted = f"   {_Colors.GRAY}|- {message}{_Colors.RESET}"
        if kwargs:
            formatted += f" {_Colors.DIM}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.info(formatted)

    def separator(self, title: str = "") -> None:
        if title:
            self._logger.info(f"{_Colors.GRAY}{'-' * 10} {title} {'-' * max(50 - len(title), 4)}{_Colors.RESET}")
        else:
            self._logger.info(f"{_Colors.GRAY}{'-' * 60}{_Colors.RESET}")

    @contextmanager
    def timed_step(self, stage: tuple[str, str, str], message: str, **kwargs: Any):
        """Log start/end of a step with elapsed time; errors are logged and re-raised.

        Usage:
            with plog.timed_step(PipelineStage.EMBED, "Embedding batch 1/3"):
                vectors = await embedder.embed_batch(texts)
        """
        self.step_start(stage, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self.step_error(stage, f"{message} failed after {elapsed:.2f}s", error=e)
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, f"{message} ({elapsed:.2f}s)", **kwargs)
