"""
Per-model input construction and allow-list enforcement for the FASHN API
"""
from enum import Enum
from typing import Dict, Any, List, Optional, Union


class FashnModel(str, Enum):
    TRYON_V1_6 = "tryon-v1.6"
    TRYON_V1_5 = "tryon-v1.5"
    PRODUCT_TO_MODEL = "product-to-model"

    @property
    def is_tryon(self) -> bool:
        return self.value.startswith("tryon-v")


class UnknownModelError(ValueError):
    def __init__(self, model_name: str):
        super().__init__(f"UNKNOWN_MODEL: {model_name}")
        self.model_name = model_name


class ModelImageRequiredError(ValueError):
    def __init__(self, model_name: str):
        super().__init__("MODEL_IMAGE_REQUIRED")
        self.model_name = model_name


# Keys each model accepts; exhaustive over FashnModel
FASHN_INPUT_WHITELIST: Dict[FashnModel, tuple] = {
    FashnModel.PRODUCT_TO_MODEL: ("product_image", "output_format", "prompt"),
    FashnModel.TRYON_V1_6: ("model_image", "garment_image", "output_format", "prompt"),
    FashnModel.TRYON_V1_5: ("model_image", "garment_image", "output_format", "prompt"),
}

TRYON_CANDIDATES = [FashnModel.TRYON_V1_6, FashnModel.TRYON_V1_5]
PRODUCT_CANDIDATES = [FashnModel.PRODUCT_TO_MODEL]


def resolve_model(model_name: Union[str, FashnModel]) -> FashnModel:
    """Map a model name onto the closed enumeration, raising for anything unknown"""
    if isinstance(model_name, FashnModel):
        return model_name
    try:
        return FashnModel(model_name)
    except ValueError:
        raise UnknownModelError(str(model_name))


def get_model_candidates(has_model_image: bool) -> List[FashnModel]:
    """Ordered fallback list; later candidates are only tried when earlier ones fail"""
    return list(TRYON_CANDIDATES if has_model_image else PRODUCT_CANDIDATES)


def build_fashn_inputs(
    model_name: Union[str, FashnModel],
    garment_image_url: str,
    model_image_url: Optional[str] = None,
    prompt: Optional[str] = None,
    include_prompt: bool = True,
) -> Dict[str, Any]:
    model = resolve_model(model_name)

    inputs: Dict[str, Any] = {"output_format": "png"}
    if include_prompt and prompt:
        inputs["prompt"] = prompt

    if model.is_tryon:
        if not model_image_url:
            raise ModelImageRequiredError(model.value)
        inputs["model_image"] = model_image_url
        inputs["garment_image"] = garment_image_url
    else:
        # product-to-model takes the garment photo as its product image
        inputs["product_image"] = garment_image_url

    return inputs


def enforce_input_whitelist(model_name: Union[str, FashnModel], inputs: Dict[str, Any]) -> Dict[str, Any]:
    """Project inputs onto the model's allow-list, preserving key order"""
    allowed = FASHN_INPUT_WHITELIST[resolve_model(model_name)]
    return {key: value for key, value in inputs.items() if key in allowed}
