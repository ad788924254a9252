from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts both camelCase (JS clients) and snake_case field names, serializes to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
