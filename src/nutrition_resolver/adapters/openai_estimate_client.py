"""OpenAI Responses API client for nutrient estimation."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from nutrition_resolver.services.source_adapters import EstimateClient


@dataclass
class OpenAIEstimateClient(EstimateClient):
    """Estimate client backed by OpenAI Responses API."""

    client: AsyncOpenAI
    model: str
    store: bool = False

    @classmethod
    def create(
        cls, api_key: str, model: str, store: bool = False
    ) -> "OpenAIEstimateClient":
        """Create an OpenAI estimate client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model, store=store)

    async def close(self) -> None:
        await self.client.close()

    async def estimate(
        self, *, ingredient: str, schema: dict[str, object], prompt: str
    ) -> dict[str, object]:
        """Call OpenAI Responses API with structured outputs."""
        response = await self.client.responses.create(
            model=self.model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_text", "text": ingredient},
                    ],
                }
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": "nutrient_estimate",
                    "strict": True,
                    "schema": schema,
                }
            },
            store=self.store,
        )
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(output_text)
