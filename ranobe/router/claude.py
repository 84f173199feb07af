# router/claude.py
import logging

import anthropic

from ranobe.router.base import CooldownMixin, TransformClient
from ranobe.router.errors import (
    InvalidInputError,
    OversizedInputError,
    RateLimitedError,
    ServiceError,
    TransformTimeoutError,
)
from ranobe.router.models import ModelConfig, TransformRequest, TransformResponse
from ranobe.router.response_parser import parse_model_response

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "claude-haiku-4-5-20251001"


class ClaudeAdapter(CooldownMixin, TransformClient):

    def __init__(self, config: ModelConfig):
        self._config = config
        self._client = anthropic.AsyncAnthropic(
            api_key = config.api_key,
            timeout = config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return self._config.name

    async def transform(self, request: TransformRequest) -> TransformResponse:
        try:
            response = await self._client.messages.create(
                model       = self._config.model_id or _DEFAULT_MODEL,
                max_tokens  = request.max_output_size,
                temperature = self._config.temperature,
                system      = request.instructions,
                messages    = [{"role": "user", "content": request.text}],
            )
        except anthropic.RateLimitError as e:
            logger.warning("Claude rate limit: %s", e)
            self._start_cooldown()
            raise RateLimitedError(str(e), retry_after=_retry_after(e)) from e

        except anthropic.APITimeoutError as e:
            logger.warning("Claude timeout: %s", e)
            raise TransformTimeoutError(str(e)) from e

        except anthropic.APIConnectionError as e:
            logger.warning("Claude error de conexión: %s", e)
            self._start_cooldown()
            raise ServiceError(str(e)) from e

        except anthropic.BadRequestError as e:
            # El fragmento en sí tiene problemas: no es un error de disponibilidad
            logger.error("Claude BadRequest: %s", e)
            if "too long" in str(e).lower():
                raise OversizedInputError(str(e)) from e
            raise InvalidInputError(str(e)) from e

        except anthropic.APIStatusError as e:
            logger.warning("Claude error de servicio (%s): %s", e.status_code, e)
            raise ServiceError(str(e)) from e

        blocks   = [b.text for b in response.content if getattr(b, "type", "") == "text"]
        raw_text = "".join(blocks)

        return TransformResponse(
            text          = parse_model_response(raw_text, self.name),
            model_used    = self.name,
            tokens_input  = response.usage.input_tokens,
            tokens_output = response.usage.output_tokens,
        )


def _retry_after(error: anthropic.APIStatusError):
    """Lee la cabecera retry-after si el servicio la envía."""
    value = error.response.headers.get("retry-after") if error.response is not None else None
    try:
        return float(value) if value else None
    except ValueError:
        return None
