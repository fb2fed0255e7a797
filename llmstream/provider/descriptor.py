"""Static provider declarations"""

from dataclasses import dataclass, field
from typing import Callable

from llmstream.session.message import Message, clean_reasoner_messages

from .normalizer import FrameAdapter, openai_frame


@dataclass(frozen=True)
class ProviderCapabilities:
    chat: bool = True
    embedding: bool = False
    rerank: bool = False
    image_generation: bool = False


@dataclass(frozen=True)
class ProviderDescriptor:
    """Data-only declaration of a backend.

    Vendor quirks live in ``frame_adapter`` and ``message_filter`` as plain
    functions; there is one client class for every provider.
    """
    name: str
    display_name: str
    default_base_url: str
    capabilities: ProviderCapabilities = field(default_factory=ProviderCapabilities)
    default_chat_model: str | None = None
    default_embedding_model: str | None = None
    is_builtin: bool = False
    requires_api_key: bool = True
    frame_adapter: FrameAdapter = openai_frame
    message_filter: Callable[[list[Message]], list[Message]] | None = None


BUILTIN_PROVIDERS: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        name="openai",
        display_name="OpenAI",
        default_base_url="https://api.openai.com/v1",
        default_chat_model="gpt-4o",
        default_embedding_model="text-embedding-3-small",
        capabilities=ProviderCapabilities(chat=True, embedding=True),
        is_builtin=True,
    ),
    ProviderDescriptor(
        name="deepseek",
        display_name="DeepSeek",
        default_base_url="https://api.deepseek.com",
        default_chat_model="deepseek-chat",
        default_embedding_model="deepseek-embedding",
        capabilities=ProviderCapabilities(chat=True, embedding=True),
        is_builtin=True,
        message_filter=clean_reasoner_messages,
    ),
    ProviderDescriptor(
        name="qwen",
        display_name="Qwen",
        default_base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
        default_chat_model="qwen-max",
        default_embedding_model="text-embedding-v2",
        capabilities=ProviderCapabilities(chat=True, embedding=True),
        is_builtin=True,
    ),
    ProviderDescriptor(
        name="kimi",
        display_name="Kimi",
        default_base_url="https://api.moonshot.cn/v1",
        default_chat_model="kimi-k2-turbo-preview",
        capabilities=ProviderCapabilities(chat=True, embedding=False),
        is_builtin=True,
    ),
    ProviderDescriptor(
        name="siliconflow",
        display_name="SiliconFlow",
        default_base_url="https://api.siliconflow.cn/v1",
        default_chat_model="deepseek-ai/DeepSeek-V3",
        default_embedding_model="BAAI/bge-m3",
        capabilities=ProviderCapabilities(chat=True, embedding=True),
        is_builtin=True,
    ),
    ProviderDescriptor(
        name="ollama",
        display_name="Ollama",
        default_base_url="http://localhost:11434/v1",
        capabilities=ProviderCapabilities(chat=True, embedding=True),
        is_builtin=True,
        requires_api_key=False,
    ),
)


def get_builtin_provider(name: str) -> ProviderDescriptor | None:
    for descriptor in BUILTIN_PROVIDERS:
        if descriptor.name == name:
            return descriptor
    return None


def is_builtin_provider(name: str) -> bool:
    return get_builtin_provider(name) is not None
