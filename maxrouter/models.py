"""
Data models for the OpenAI-compatible API and the native Messages API
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Literal, Union


# ============================================================================
# OpenAI Chat Completions
# ============================================================================

class FunctionDefinition(BaseModel):
    name: str
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class Tool(BaseModel):
    """OpenAI tool spec: name/description/parameters nested under `function`"""
    type: Literal["function"] = "function"
    function: FunctionDefinition


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""  # JSON string


class ToolCall(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class ChatMessage(BaseModel):
    """OpenAI-compatible message model"""
    role: Literal["system", "developer", "user", "assistant", "tool"]
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request"""
    model: str
    # Optional so an absent list surfaces as a TranslationError, not a schema error
    messages: Optional[List[ChatMessage]] = None
    max_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None
    stream: Optional[bool] = False
    tools: Optional[List[Tool]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    user: Optional[str] = None
    # No native equivalent
    n: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    logit_bias: Optional[Dict[str, float]] = None
    logprobs: Optional[bool] = None
    top_logprobs: Optional[int] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class AssistantMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None


class Choice(BaseModel):
    index: int = 0
    message: AssistantMessage
    finish_reason: Optional[str] = "stop"


class ChatCompletionResponse(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage = Field(default_factory=Usage)


class ModelInfo(BaseModel):
    id: str
    object: str = "model"
    created: int = 0
    owned_by: str = "anthropic"


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelInfo]


class ErrorDetail(BaseModel):
    message: str
    type: str
    param: Optional[str] = None
    code: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


# ============================================================================
# Native Messages API
# ============================================================================

class SystemBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str
    cache_control: Optional[Dict[str, Any]] = None


class NativeMessage(BaseModel):
    """Native message: roles alternate user/assistant, no inline system role"""
    role: Literal["user", "assistant"]
    content: Union[str, List[Dict[str, Any]]]


class NativeTool(BaseModel):
    """Native tool spec: flat name/description/input_schema"""
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class NativeRequest(BaseModel):
    model: str
    max_tokens: int
    messages: List[NativeMessage]
    system: List[SystemBlock] = Field(default_factory=list)
    tools: Optional[List[NativeTool]] = None
    tool_choice: Optional[Dict[str, Any]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    stream: Optional[bool] = None

    def to_payload(self) -> Dict[str, Any]:
        """Wire form: unset optional fields are omitted, `system` is always present"""
        return self.model_dump(exclude_none=True)


class NativeUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None


class NativeResponse(BaseModel):
    id: str = ""
    type: str = "message"
    role: str = "assistant"
    content: List[Dict[str, Any]] = Field(default_factory=list)
    model: str = ""
    stop_reason: Optional[str] = None
    stop_sequence: Optional[str] = None
    usage: NativeUsage = Field(default_factory=NativeUsage)


class NativeErrorDetail(BaseModel):
    type: str
    message: str


class NativeErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    error: NativeErrorDetail
