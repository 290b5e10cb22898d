"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class AppConfig:
    document_private: bool = False
    min_existing_doc_len: int = 20
    inference_timeout_ms: int = 5000
    inference_concurrency: int = 8
    document_module_root: bool = False

    def __post_init__(self) -> None:
        if self.min_existing_doc_len < 0:
            raise ValueError("min_existing_doc_len must be >= 0")
        if self.inference_timeout_ms <= 0:
            raise ValueError("inference_timeout_ms must be positive")
        if self.inference_concurrency < 1:
            raise ValueError("inference_concurrency must be at least 1")

    @property
    def inference_timeout(self) -> float:
        """Per-item inference timeout in seconds."""
        return self.inference_timeout_ms / 1000
