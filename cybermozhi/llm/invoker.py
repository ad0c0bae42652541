"""The seam between conversation logic and whatever actually talks to the model."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Sequence, Type, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class ToolBinding:
    """A capability the model may call mid-generation.

    `parameters` is the declaration shown to the model; `input_model` and
    `output_model` validate each call the same way a template call is validated.
    """

    name: str
    description: str
    parameters: Dict[str, Any]
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]
    handler: Callable[[BaseModel], Awaitable[BaseModel]]


class ModelInvoker(ABC):
    @abstractmethod
    async def invoke(
        self,
        template_id: str,
        data: Union[BaseModel, Dict[str, Any]],
        tools: Sequence[ToolBinding] = (),
    ) -> BaseModel:
        """Run one template against the model and return its validated output model."""
