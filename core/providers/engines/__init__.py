"""Provider engine implementations.

Importing this package registers every engine with ``ProviderInterface`` under its engine name.

Modules:
- JotobaDictionary: Curated Japanese word dictionary over HTTP.
- GoogleCloudTranslation: Google Cloud Translation API v2.
- DeeplTranslation: DeepL API.
- OpenAIGenerative: OpenAI chat completions producing a JSON dictionary entry.
"""

from core.providers.engines.deepl_translation import DeeplTranslation
from core.providers.engines.google_cloud_translation import APIKeySession, GoogleCloudTranslation
from core.providers.engines.jotoba_dictionary import JotobaDictionary
from core.providers.engines.openai_generative import OpenAIGenerative

__all__: list[str] = [
    "APIKeySession",
    "DeeplTranslation",
    "GoogleCloudTranslation",
    "JotobaDictionary",
    "OpenAIGenerative",
]
