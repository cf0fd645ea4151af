"""
LLM 客户端

生成后端只需要一个能力：generate(prompt) -> text。
失败一律抛 GenerationBackendError，绝不把错误当文本返回。
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..config import Settings, settings as default_settings
from ..errors import GenerationBackendError

logger = logging.getLogger(__name__)


class LLMDriver(ABC):
    """生成后端基类"""

    @abstractmethod
    async def generate(self, prompt: str, options: Optional[dict] = None) -> str:
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass


class OllamaDriver(LLMDriver):
    """本地 Ollama: POST /api/generate"""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen-coder:30b",
        timeout: int = 600,
        options: Optional[dict] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.default_options = options or {"temperature": 0.8, "top_p": 0.9, "num_ctx": 4096}

    async def generate(self, prompt: str, options: Optional[dict] = None) -> str:
        merged = {**self.default_options, **(options or {})}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self.base_url}/api/generate",
                    json={
                        "model": self.model,
                        "prompt": prompt,
                        "stream": False,
                        "options": merged,
                    },
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"Ollama 生成失败: {e}")
            raise GenerationBackendError(f"Ollama generate failed: {e}") from e

        return (data.get("response") or "").strip()

    async def is_available(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5, trust_env=False) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError:
            return False

    def get_model_name(self) -> str:
        return self.model


class OpenAIDriver(LLMDriver):
    """OpenAI 兼容: POST /v1/chat/completions"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com",
        model: str = "gpt-4o",
        timeout: int = 60,
        max_tokens: int = 4096,
        temperature: float = 0.8,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(self, prompt: str, options: Optional[dict] = None) -> str:
        options = options or {}
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {
            "model": self.model,
            "max_tokens": options.get("max_tokens", self.max_tokens),
            "temperature": options.get("temperature", self.temperature),
            "messages": [
                {"role": "user", "content": prompt}
            ],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self.base_url}/v1/chat/completions",
                    headers=headers,
                    json=payload,
                )
                resp.raise_for_status()
                data = resp.json()
            return (data["choices"][0]["message"]["content"] or "").strip()
        except httpx.HTTPError as e:
            logger.error(f"OpenAI 生成失败: {e}")
            raise GenerationBackendError(f"OpenAI generate failed: {e}") from e
        except (KeyError, IndexError) as e:
            raise GenerationBackendError(f"Malformed OpenAI response: {e}") from e

    async def is_available(self) -> bool:
        return bool(self.api_key)

    def get_model_name(self) -> str:
        return self.model


class LLMService:
    """生成服务（带耗时日志）"""

    def __init__(self, driver: LLMDriver):
        self.driver = driver

    async def generate(self, prompt: str, options: Optional[dict] = None) -> str:
        logger.debug(f"LLM 请求: model={self.driver.get_model_name()} prompt_length={len(prompt)}")
        start = time.monotonic()
        try:
            response = await self.driver.generate(prompt, options)
        except GenerationBackendError:
            raise
        except Exception as e:
            raise GenerationBackendError(str(e)) from e
        duration_ms = round((time.monotonic() - start) * 1000)
        logger.debug(f"LLM 响应: length={len(response)} duration={duration_ms}ms")
        return response

    async def is_available(self) -> bool:
        return await self.driver.is_available()

    def get_model_name(self) -> str:
        return self.driver.get_model_name()


def create_llm_service(cfg: Optional[Settings] = None) -> LLMService:
    """按配置创建生成服务"""
    cfg = cfg or default_settings
    if cfg.llm_driver == "openai":
        driver = OpenAIDriver(
            api_key=cfg.openai_api_key,
            base_url=cfg.openai_base_url,
            model=cfg.openai_model,
            timeout=cfg.openai_timeout,
            max_tokens=cfg.llm_max_tokens,
            temperature=cfg.llm_temperature,
        )
    else:
        driver = OllamaDriver(
            base_url=cfg.ollama_base_url,
            model=cfg.ollama_model,
            timeout=cfg.ollama_timeout,
            options={
                "temperature": cfg.llm_temperature,
                "top_p": cfg.llm_top_p,
                "num_ctx": cfg.llm_num_ctx,
            },
        )
    return LLMService(driver)
