import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import httpx

from app.categories import AVAILABLE_CATEGORIES, filter_known
from app.config import get_settings
from app.errors import ClassifierError
from app.models.match import OnboardingAnswer

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert in Bitcoin and cryptocurrency marketing. Your task is to categorize "
    "products and determine their suitability for different types of crypto influencers."
)

PROMPT_TEMPLATE = """
Analyze the following product information and categorize it based on the available categories for Bitcoin/crypto influencers.

Product Information:
- Company: {company_name}
- Product Name: {product_name}
- Product URL: {product_url}
- Description: {product_description}
- Current Category: {product_category}

Available Categories:
{categories}

Set is_bitcoin_suitable to true when the product is Bitcoin-specific, targets the
Bitcoin-only community, or explicitly excludes other cryptocurrencies.

Select the most appropriate categories from the available list (multiple allowed)
and respond in the following JSON format:
{{
  "categories": ["category1", "category2"],
  "is_bitcoin_suitable": true,
  "explanation": "Brief explanation"
}}
"""

BITCOIN_ONLY_PHRASES = [
    "bitcoin-only", "bitcoin only", "btc-only", "btc only", "bitcoiner",
    "bitcoin maximalist", "only bitcoin", "exclusively bitcoin",
]

# Keyword heuristic used when no API key is configured
KEYWORD_CATEGORIES = {
    "btc-only": BITCOIN_ONLY_PHRASES,
    "custody": ["wallet", "custody", "multisig", "cold storage", "hardware"],
    "mining": ["mining", "miner", "hashrate"],
    "privacy": ["privacy", "coinjoin", "anonymous"],
    "security": ["security", "secure", "seed phrase"],
    "education": ["education", "learn", "teach"],
    "courses": ["course", "class", "bootcamp"],
    "trading": ["trading", "trader", "exchange"],
    "investing": ["invest", "portfolio", "savings"],
    "taxation": ["tax"],
    "accounting": ["accounting", "bookkeeping"],
    "podcast": ["podcast"],
    "news": ["news", "newsletter"],
    "tech": ["node", "lightning", "software", "app"],
    "travel": ["travel"],
    "lifestyle": ["lifestyle", "apparel", "clothing"],
    "altcoins": ["altcoin", "ethereum", "solana"],
}


@dataclass
class Classification:
    categories: list[str] = field(default_factory=list)
    is_bitcoin_suitable: bool = False
    explanation: str = ""


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```[a-zA-Z]*\n?", "", text)
        text = re.sub(r"```$", "", text).strip()
    return text


def parse_classification(content: str) -> Classification:
    """Parse the model's JSON answer, keeping only known categories."""
    try:
        data = json.loads(_strip_code_fence(content))
    except json.JSONDecodeError as e:
        raise ClassifierError("Invalid response format from AI") from e
    if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
        raise ClassifierError("Invalid response format from AI")

    raw = [c for c in data["categories"] if isinstance(c, str)]
    categories = filter_known(raw)
    dropped = [c for c in raw if c not in categories]
    if dropped:
        logger.info("Dropped unrecognized categories from classifier: %s", dropped)

    return Classification(
        categories=categories,
        is_bitcoin_suitable=bool(data.get("is_bitcoin_suitable")),
        explanation=str(data.get("explanation") or ""),
    )


class CategoryClassifier:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_settings()
        self.transport = transport
        self.api_key = settings.openai_api_key
        self.base_url = settings.openai_base_url
        self.model = settings.openai_model
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _is_configured(self) -> bool:
        return bool(self.api_key)

    async def classify(self, answer: OnboardingAnswer) -> Classification:
        if not self._is_configured():
            return self._keyword_classify(answer)

        prompt = PROMPT_TEMPLATE.format(
            company_name=answer.company_name or "Not provided",
            product_name=answer.product_name or "Not provided",
            product_url=answer.product_url or "Not provided",
            product_description=answer.product_description or "Not provided",
            product_category=answer.product_category or "Not provided",
            categories=", ".join(AVAILABLE_CATEGORIES),
        )
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
            "max_tokens": 500,
        }

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self.headers,
                    json=payload,
                    timeout=30,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.error("Classifier request failed: %s", e)
            raise ClassifierError("Classifier request failed") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ClassifierError("No response from classifier")
        return parse_classification(content)

    def _keyword_classify(self, answer: OnboardingAnswer) -> Classification:
        """Cheap offline classification for development without an API key."""
        text = " ".join(
            filter(None, [answer.product_name, answer.product_description, answer.product_category])
        ).lower()
        categories = [
            category
            for category, keywords in KEYWORD_CATEGORIES.items()
            if any(kw in text for kw in keywords)
        ]
        bitcoin = any(phrase in text for phrase in BITCOIN_ONLY_PHRASES)
        return Classification(
            categories=filter_known(categories),
            is_bitcoin_suitable=bitcoin,
            explanation="Keyword match (classifier API not configured)",
        )
