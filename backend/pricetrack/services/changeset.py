"""Change-sets — partial updates expressed as pydantic models of optional fields."""

from pydantic import BaseModel


def build_update_values(change_set: BaseModel) -> dict:
    """Column values for the fields the caller actually set, in declaration order.

    The result feeds a parameterized ``UPDATE ... SET``; column names come
    from the model, never from the request body.
    """
    provided = change_set.model_dump(exclude_unset=True)
    return {name: provided[name] for name in type(change_set).model_fields if name in provided}
