"""Context delivery: strategy selection, retrieval, and prompt assembly."""

from fileready.services.context.prompt_assembler import ContextPromptAssembler
from fileready.services.context.retrieval import ContextRetrievalService
from fileready.services.context.strategy import ContextStrategySelector

__all__ = ["ContextPromptAssembler", "ContextRetrievalService", "ContextStrategySelector"]
