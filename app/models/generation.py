"""
Generation request/response models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class PromptOptions(BaseModel):
    """Normalized attribute selections fed to the prompt assembler"""
    environment: Optional[str] = None
    model_type: Optional[str] = None
    age_group: Optional[str] = None
    gender: Optional[str] = None
    style: Optional[str] = None
    skin_tone: Optional[str] = None
    style_type: Optional[str] = None
    aspect_ratio: Optional[str] = None

    model_config = ConfigDict(protected_namespaces=())


class FormSelections(BaseModel):
    """Raw form values; they take precedence over PromptOptions when not None"""
    style_type: Optional[str] = None
    gender: Optional[str] = None
    age_group: Optional[str] = None
    skin_tone: Optional[str] = None
    aspect_ratio: Optional[str] = None


class ResolvedPrompt(BaseModel):
    age: Optional[str] = None
    gender: Optional[str] = None
    skin_tone: Optional[str] = None
    style: Optional[str] = None
    environment: Optional[str] = None
    model_type: Optional[str] = None
    aspect_ratio: Optional[str] = None

    model_config = ConfigDict(protected_namespaces=())


class PromptAssemblyResult(BaseModel):
    prompt: str
    resolved: ResolvedPrompt
    missing: List[str] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    """
    Body of POST /api/generate
    Several aliases are accepted for the image fields and attributes
    """
    garmentImageUrl: Optional[str] = None
    garment_image: Optional[str] = None
    garmentImage: Optional[str] = None
    imageUrl: Optional[str] = None
    image: Optional[str] = None

    modelImageUrl: Optional[str] = None
    model_image: Optional[str] = None
    modelImage: Optional[str] = None

    mode: Optional[str] = None
    styleType: Optional[str] = None
    aspectRatio: Optional[str] = None
    environment: Optional[str] = None
    modelType: Optional[str] = None
    ageGroup: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    style: Optional[str] = None
    skinTone: Optional[str] = None
    tone: Optional[str] = None

    options: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore", protected_namespaces=())


class NormalizedGeneration(BaseModel):
    """Validated generation request, ready for the orchestrator"""
    garment_image_url: str
    model_image_url: Optional[str] = None
    mode: Optional[str] = None
    options: PromptOptions
    form: FormSelections

    model_config = ConfigDict(protected_namespaces=())

    @property
    def has_model_image(self) -> bool:
        return bool(self.model_image_url)


class GenerationRecord(BaseModel):
    id: str
    url: str
    plan: str
    createdAt: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class GenerateResponse(BaseModel):
    success: bool = True
    outputUrl: str
    creditsRemaining: int
    totalCredits: Optional[int] = None
    plan: Optional[str] = None
    model: Optional[str] = None
    generation: Optional[GenerationRecord] = None


class GenerationListResponse(BaseModel):
    success: bool = True
    generations: List[GenerationRecord]
