"""
Knowledge Base External Service Adapters
=========================================

Adapters for text extraction and embedding used by the knowledge base
module.

Implements the interfaces defined in the application layer using concrete
external libraries and the infrastructure LLM client.
"""

import asyncio
import io
import warnings
from pathlib import PurePath
from typing import Dict, List

from pypdf import PdfReader

from src.core import EmbeddingException, ExtractionException
from src.infrastructure.llm import ILLMClient
from src.knowledge_base.application import IEmbeddingProvider, ITextExtractor


class PDFTextExtractor(ITextExtractor):
    """Extracts page text from PDF bytes with pypdf."""

    async def extract(self, data: bytes, filename: str) -> str:
        return await asyncio.to_thread(self._extract_sync, data, filename)

    @staticmethod
    def _extract_sync(data: bytes, filename: str) -> str:
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                reader = PdfReader(io.BytesIO(data))
                pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise ExtractionException(filename, f"invalid PDF ({e})")
        return "\n\n".join(pages)


class PlainTextExtractor(ITextExtractor):
    """Decodes UTF-8 text files (a leading BOM is dropped)."""

    async def extract(self, data: bytes, filename: str) -> str:
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ExtractionException(filename, f"not valid UTF-8 ({e.reason})")


class CompositeTextExtractor(ITextExtractor):
    """
    Dispatches to an extractor by file extension.

    Example:
        extractor = CompositeTextExtractor.default()
        text = await extractor.extract(pdf_bytes, "Guide v1.pdf")
    """

    def __init__(self, extractors: Dict[str, ITextExtractor]):
        self._extractors = {ext.lower(): extractor for ext, extractor in extractors.items()}

    @classmethod
    def default(cls) -> "CompositeTextExtractor":
        plain = PlainTextExtractor()
        return cls({".pdf": PDFTextExtractor(), ".txt": plain, ".md": plain})

    @property
    def supported_extensions(self) -> List[str]:
        return sorted(self._extractors)

    async def extract(self, data: bytes, filename: str) -> str:
        extension = PurePath(filename).suffix.lower()
        extractor = self._extractors.get(extension)
        if extractor is None:
            raise ExtractionException(
                filename,
                f"unsupported file type '{extension or 'none'}'",
                {"filename": filename, "supported": self.supported_extensions}
            )
        return await extractor.extract(data, filename)


class EmbeddingProviderAdapter(IEmbeddingProvider):
    """
    Adapter that wraps the infrastructure LLM client.

    Implements the application layer IEmbeddingProvider interface and
    checks every vector has the configured dimension.
    """

    def __init__(self, llm_client: ILLMClient, dimension: int):
        self._client = llm_client
        self._dimension = dimension

    async def embed(self, text: str) -> List[float]:
        result = await self._client.generate_embedding(text)
        if len(result.embedding) != self._dimension:
            raise EmbeddingException(
                f"Expected {self._dimension}-dimensional embedding, got {len(result.embedding)}",
                {"model": result.model}
            )
        return result.embedding
