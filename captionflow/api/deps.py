"""Shared FastAPI dependencies for the API routers."""
import logging

from fastapi import Request

from captionflow.core.errors import GenerationFailedError
from captionflow.features.billing.provider import BillingProvider, BillingProviderError
from captionflow.features.captions.parser import CaptionParser, LabeledTextParser
from captionflow.features.llm.client import GenerationClient

logger = logging.getLogger("captionflow")


def get_llm(request: Request) -> GenerationClient:
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        logger.error("llm.unconfigured", extra={"error_code": "generation_failed"})
        raise GenerationFailedError()
    return llm


def get_caption_parser(request: Request) -> CaptionParser:
    return getattr(request.app.state, "caption_parser", None) or LabeledTextParser()


def get_billing_provider(request: Request) -> BillingProvider:
    provider = getattr(request.app.state, "billing", None)
    if provider is None:
        raise BillingProviderError("Billing is not configured")
    return provider
