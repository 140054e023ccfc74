"""
JSON serialization for session values with registered model types.
"""
import json
import logging
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from ..error.exceptions import SessionDecodeError, UnregisteredType

logger = logging.getLogger(__name__)

TYPE_TAG = "__type__"
VALUE_TAG = "value"
# Reserved tag for plain dicts that happen to contain TYPE_TAG
DICT_TAG = "dict"


class SessionSerializer:
    """
    Converts session data to and from JSON.

    JSON primitives, lists, tuples and string-keyed dicts are stored as-is.
    Any other value must be a pydantic model registered ahead of time; it is
    stored as ``{"__type__": <name>, "value": <fields>}``. Values of any other
    type raise ``UnregisteredType`` when the session is encoded.
    """

    def __init__(self):
        self._models: Dict[str, Type[BaseModel]] = {}
        self._names: Dict[Type[BaseModel], str] = {}

    def register(self, model: Optional[Type[BaseModel]] = None, name: Optional[str] = None):
        """
        Register a pydantic model for storage in sessions.

        Can be called directly or used as a class decorator.

        Args:
            model: Model class to register
            name: Tag stored in the cookie, the class name by default

        Returns:
            The model class
        """
        if model is None:
            return lambda cls: self.register(cls, name)

        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise TypeError(f"Only pydantic models can be registered, got {model!r}")

        tag = name or model.__name__
        if tag == DICT_TAG:
            raise ValueError(f"Session type name '{tag}' is reserved")
        existing = self._models.get(tag)
        if existing is not None and existing is not model:
            raise ValueError(f"Session type name '{tag}' is already registered to {existing.__name__}")

        self._models[tag] = model
        self._names[model] = tag
        logger.debug(f"Registered session type '{tag}'")
        return model

    def is_registered(self, model: Type[BaseModel]) -> bool:
        return model in self._names

    def dumps(self, data: Dict[str, Any]) -> str:
        """
        Serialize session data to a JSON string.

        Raises:
            UnregisteredType: If a value has a type the serializer cannot store
        """
        return json.dumps(self._encode(data), separators=(",", ":"), sort_keys=True)

    def loads(self, text: str) -> Dict[str, Any]:
        """
        Deserialize session data produced by ``dumps``.

        Raises:
            SessionDecodeError: If the text is not a valid session payload
            UnregisteredType: If a stored type is no longer registered
        """
        try:
            raw = json.loads(text)
        except ValueError as e:
            raise SessionDecodeError(f"Session payload is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise SessionDecodeError("Session payload must be a JSON object")
        return self._decode(raw)

    def _encode(self, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, (list, tuple)):
            return [self._encode(item) for item in value]
        if isinstance(value, dict):
            encoded = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise UnregisteredType(f"dict key of type {type(key).__name__}")
                encoded[key] = self._encode(item)
            if TYPE_TAG in encoded:
                return {TYPE_TAG: DICT_TAG, VALUE_TAG: encoded}
            return encoded

        tag = self._names.get(type(value))
        if tag is None:
            raise UnregisteredType(type(value).__name__)
        return {TYPE_TAG: tag, VALUE_TAG: value.model_dump(mode="json")}

    def _decode(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self._decode(item) for item in value]
        if not isinstance(value, dict):
            return value

        if TYPE_TAG not in value:
            return {key: self._decode(item) for key, item in value.items()}

        tag = value.get(TYPE_TAG)
        payload = value.get(VALUE_TAG)
        if tag == DICT_TAG:
            if not isinstance(payload, dict):
                raise SessionDecodeError("Tagged dict payload must be an object")
            return {key: self._decode(item) for key, item in payload.items()}

        model = self._models.get(tag)
        if model is None:
            raise UnregisteredType(str(tag))
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise SessionDecodeError(f"Stored '{tag}' value is invalid: {e}") from e
