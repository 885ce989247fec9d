from decimal import Decimal
from inspect import Parameter
from typing import Any, Dict, Type


class Hydrator:
    """Object responsible for casting from the data layer to a model"""

    fallback: Type[object] = dict
    """The model type that will be used if there is none passed in the
    hydrate method"""

    def hydrate(
        self, data: Dict[str, Any], model: Type[object] = Parameter.empty
    ):
        """Perform casting operation

        Args:
            data (Dict[str, Any]): Raw row from the session
            model (Type[object], optional): The model that will do the
                casting. If no value is passed, it will use whatever the
                Hydrator's fallback value is set to. Defaults to
                `Parameter.empty`.

        Returns:
            Any: The data cast into the model
        """
        if model is Parameter.empty:
            model = self.fallback
        if model is Decimal:
            return Decimal(str(*data.values()))
        if model in (str, int, float, bool):
            return model(*data.values())
        if model is dict:
            return dict(data)
        return model(**data)
