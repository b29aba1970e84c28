import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import HumanMessage

from turn_router.agent.classifier import ComplexityClassifier
from turn_router.agent.invoker import LangChainModelInvoker, create_openai_model
from turn_router.config import ModelSettings
from turn_router.types import Classification, ClassificationStage


@pytest.mark.asyncio
async def test_invoker_returns_model_text() -> None:
    invoker = LangChainModelInvoker(FakeListChatModel(responses=["hello"]))

    text = await invoker([HumanMessage(content="hi")], temperature=0.1, max_tokens=150)

    assert text == "hello"


@pytest.mark.asyncio
async def test_invoker_builds_one_model_per_settings() -> None:
    built: list[ModelSettings] = []

    def _factory(settings: ModelSettings) -> FakeListChatModel:
        built.append(settings)
        return FakeListChatModel(responses=[settings.selected_model or "default"])

    invoker = LangChainModelInvoker(model_factory=_factory)
    settings = ModelSettings(provider="local", selectedModel="llama3", localModelUrl="http://localhost:11434/v1")

    first = await invoker([HumanMessage(content="hi")], temperature=0.1, max_tokens=150, settings=settings)
    second = await invoker([HumanMessage(content="hi")], temperature=0.1, max_tokens=150, settings=settings)

    assert first == second == "llama3"
    assert built == [settings]


@pytest.mark.asyncio
async def test_classifier_runs_model_stage_through_langchain() -> None:
    llm = FakeListChatModel(
        responses=['{"classification": "COMPLEX", "reasoning": "multi-step plan", "confidence": 0.75}']
    )
    classifier = ComplexityClassifier(model_invoker=LangChainModelInvoker(llm))

    decision = await classifier.classify("How do I plan a wedding?")

    assert decision.classification is Classification.COMPLEX
    assert decision.stage is ClassificationStage.MODEL
    assert decision.confidence == pytest.approx(0.75)


def test_invoker_requires_a_model_source() -> None:
    with pytest.raises(ValueError):
        LangChainModelInvoker()


def test_openai_factory_rejects_unknown_provider() -> None:
    with pytest.raises(ValueError):
        create_openai_model(ModelSettings(provider="anthropic"))


def test_openai_factory_targets_local_endpoint() -> None:
    model = create_openai_model(
        ModelSettings(provider="local", selectedModel="llama3", localModelUrl="http://localhost:11434/v1")
    )

    assert model.model_name == "llama3"


@pytest.mark.asyncio
async def test_invoker_evicts_least_recently_used_models() -> None:
    built: list[str] = []

    def _factory(settings: ModelSettings) -> FakeListChatModel:
        built.append(settings.selected_model)
        return FakeListChatModel(responses=[settings.selected_model])

    invoker = LangChainModelInvoker(model_factory=_factory, max_cached_models=2)
    for name in ("a", "b", "c", "a"):
        await invoker(
            [HumanMessage(content="hi")],
            temperature=0.1,
            max_tokens=150,
            settings=ModelSettings(provider="openai", selectedModel=name),
        )

    assert built == ["a", "b", "c", "a"]
