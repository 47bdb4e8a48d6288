from papercapsule.infrastructure.enrichment.translation_client import TranslationClient

__all__ = ["TranslationClient"]
