from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "poster_validation.yml"

load_dotenv()


@dataclass(frozen=True)
class SamplingConfig:
    temperature: float = 0.1
    top_p: float = 0.95
    max_tokens: int = 4096


@dataclass(frozen=True)
class OCRConfig:
    enabled: bool = False
    lang: str = "ara"
    tesseract_config: str = "--psm 6"


@dataclass(frozen=True)
class ServerConfig:
    host_env: str = "HOST"
    port_env: str = "PORT"
    default_host: str = "0.0.0.0"
    default_port: int = 3000

    @property
    def host(self) -> str:
        return os.getenv(self.host_env, "") or self.default_host

    @property
    def port(self) -> int:
        return int(os.getenv(self.port_env, "") or self.default_port)


@dataclass(frozen=True)
class PosterValidationConfig:
    model: str
    provider: str
    api_key_env: str
    api_url_env: str
    timeout_s: float
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @property
    def api_key(self) -> str:
        return os.getenv(self.api_key_env, "")

    @property
    def api_url(self) -> Optional[str]:
        return os.getenv(self.api_url_env) or None

    @property
    def llm_available(self) -> bool:
        return bool(self.api_key)


@lru_cache
def get_poster_validation_config(path: Path = CONFIG_PATH) -> PosterValidationConfig:
    data = yaml.safe_load(path.read_text()) if path.exists() else {}
    data = data or {}
    sampling_data = data.get("sampling") or {}
    ocr_data = data.get("ocr") or {}
    server_data = data.get("server") or {}
    sampling = SamplingConfig(
        temperature=float(sampling_data.get("temperature", 0.1)),
        top_p=float(sampling_data.get("top_p", 0.95)),
        max_tokens=int(sampling_data.get("max_tokens", 4096)),
    )
    ocr = OCRConfig(
        enabled=bool(ocr_data.get("enabled", False)),
        lang=ocr_data.get("lang", "ara"),
        tesseract_config=ocr_data.get("tesseract_config", "--psm 6"),
    )
    server = ServerConfig(
        host_env=server_data.get("host_env", "HOST"),
        port_env=server_data.get("port_env", "PORT"),
        default_host=server_data.get("default_host", "0.0.0.0"),
        default_port=int(server_data.get("default_port", 3000)),
    )
    return PosterValidationConfig(
        model=data.get("model", "qwen3-vl-plus"),
        provider=data.get("provider", "dashscope"),
        api_key_env=data.get("api_key_env", "DASHSCOPE_API_KEY"),
        api_url_env=data.get("api_url_env", "DASHSCOPE_BASE_URL"),
        timeout_s=float(data.get("timeout_s", 60.0)),
        sampling=sampling,
        ocr=ocr,
        server=server,
    )
