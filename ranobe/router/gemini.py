# router/gemini.py
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

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

_DEFAULT_MODEL = "gemini-2.5-flash"

_SERVICE_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
)


class GeminiAdapter(CooldownMixin, TransformClient):

    def __init__(self, config: ModelConfig):
        self._config     = config
        self._configured = False
        self._model = genai.GenerativeModel(
            model_name = config.model_id or _DEFAULT_MODEL,
        )

    @property
    def name(self) -> str:
        return self._config.name

    async def transform(self, request: TransformRequest) -> TransformResponse:
        if not self._configured:
            # genai.configure es global: el modelo captura su cliente async en
            # la primera llamada, antes de ceder el control al event loop.
            genai.configure(api_key=self._config.api_key)
            self._configured = True

        full_prompt = f"{request.instructions}\n\n{request.text}"

        try:
            response = await self._model.generate_content_async(
                full_prompt,
                generation_config = genai.GenerationConfig(
                    temperature       = self._config.temperature,
                    max_output_tokens = request.max_output_size,
                ),
                request_options = {"timeout": self._config.timeout_seconds},
            )
        except google_exceptions.ResourceExhausted as e:
            logger.warning("Gemini rate limit: %s", e)
            self._start_cooldown()
            raise RateLimitedError(str(e)) from e

        except google_exceptions.DeadlineExceeded as e:
            logger.warning("Gemini timeout: %s", e)
            raise TransformTimeoutError(str(e)) from e

        except google_exceptions.InvalidArgument as e:
            logger.error("Gemini InvalidArgument: %s", e)
            if "token" in str(e).lower() and "exceed" in str(e).lower():
                raise OversizedInputError(str(e)) from e
            raise InvalidInputError(str(e)) from e

        except _SERVICE_ERRORS as e:
            logger.warning("Gemini error de servicio: %s", e)
            self._start_cooldown()
            raise ServiceError(str(e)) from e

        try:
            raw_text = response.text
        except ValueError as e:
            # Respuesta bloqueada por filtros de seguridad o sin candidatos
            raise ServiceError(f"Gemini no devolvió texto: {e}") from e

        usage = response.usage_metadata

        return TransformResponse(
            text          = parse_model_response(raw_text, self.name),
            model_used    = self.name,
            tokens_input  = usage.prompt_token_count,
            tokens_output = usage.candidates_token_count,
        )
