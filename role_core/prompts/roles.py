"""角色定义：人设描述、分步指令与各角色专属参数。

专属参数用 pydantic 模型声明，RolePromptBuilder 在组装提示词前校验；
未填写的可选参数不会出现在提示词里。
"""

from enum import Enum
from typing import Any, Dict, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class RoleId(str, Enum):
    CODER = "coder"
    QA = "qa"
    PROJECT_MANAGER = "project_manager"
    CPO = "cpo"
    UI_UX = "ui_ux"
    SUMMARIZER = "summarizer"
    REWRITER = "rewriter"
    ANALYST = "analyst"
    CUSTOM = "custom"


class RoleArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CoderArgs(RoleArgs):
    language: Optional[str] = Field(default=None, description="Programming language to use")
    architecture: Optional[str] = Field(default=None, description="Preferred architecture or design pattern")
    tests: Optional[bool] = Field(default=None, description="Whether to include tests")


class QAArgs(RoleArgs):
    test_type: Optional[Literal["unit", "integration", "e2e", "manual", "all"]] = None
    framework: Optional[str] = None


class ProjectManagerArgs(RoleArgs):
    timeline: Optional[str] = None
    resources: Optional[str] = None
    methodology: Optional[Literal["agile", "waterfall", "kanban", "scrum", "other"]] = None


class CPOArgs(RoleArgs):
    market: Optional[str] = None
    competitors: Optional[str] = None
    metrics: Optional[str] = None


class UIUXArgs(RoleArgs):
    platform: Optional[str] = None
    brand_guidelines: Optional[str] = None
    accessibility: Optional[Literal["AA", "AAA", "none"]] = None


class SummarizerArgs(RoleArgs):
    length: Optional[Literal["short", "medium", "long"]] = None
    focus: Optional[str] = None
    format: Optional[Literal["bullets", "paragraphs", "outline"]] = None


class RewriterArgs(RoleArgs):
    style: Optional[str] = None
    tone: Optional[str] = None
    audience: Optional[str] = None


class AnalystArgs(RoleArgs):
    data_type: Optional[str] = None
    analysis_focus: Optional[str] = None
    visualization: Optional[bool] = None


class CustomArgs(RoleArgs):
    role: str = Field(description="The specific role to assume")
    parameters: Optional[Dict[str, Any]] = None


ROLE_ARGS: Dict[RoleId, Type[RoleArgs]] = {
    RoleId.CODER: CoderArgs,
    RoleId.QA: QAArgs,
    RoleId.PROJECT_MANAGER: ProjectManagerArgs,
    RoleId.CPO: CPOArgs,
    RoleId.UI_UX: UIUXArgs,
    RoleId.SUMMARIZER: SummarizerArgs,
    RoleId.REWRITER: RewriterArgs,
    RoleId.ANALYST: AnalystArgs,
    RoleId.CUSTOM: CustomArgs,
}


ROLE_DESCRIPTIONS: Dict[RoleId, str] = {
    RoleId.CODER: (
        "You are an expert software developer with deep knowledge of clean code, design patterns, "
        "and software architecture. You excel at generating efficient, maintainable code that follows "
        "best practices."
    ),
    RoleId.QA: (
        "You are a quality assurance specialist with expertise in software testing methodologies, "
        "test design, and defect identification. You can create comprehensive test plans and test "
        "cases that ensure software quality."
    ),
    RoleId.PROJECT_MANAGER: (
        "You are a skilled project manager with expertise in task coordination, resource allocation, "
        "and timeline management. You can create clear project plans and break down complex "
        "initiatives into actionable tasks."
    ),
    RoleId.CPO: (
        "You are a Chief Product Officer with expertise in product strategy, market analysis, and "
        "feature prioritization. You excel at aligning product development with business goals and "
        "user needs."
    ),
    RoleId.UI_UX: (
        "You are a UI/UX designer with expertise in user interface design, interaction patterns, and "
        "user experience principles. You create intuitive, accessible, and aesthetically pleasing "
        "designs focused on user needs."
    ),
    RoleId.SUMMARIZER: (
        "You are an expert at creating concise, accurate summaries that capture the essence of complex "
        "information. You can identify key points and communicate them clearly and efficiently."
    ),
    RoleId.REWRITER: (
        "You are a skilled content editor and rewriter with expertise in adapting text to different "
        "tones, styles, and audiences while preserving the core message. You can improve clarity, flow, "
        "and impact of any content."
    ),
    RoleId.ANALYST: (
        "You are a data analyst with expertise in finding patterns, trends, and insights in information. "
        "You can extract meaningful conclusions and present them in a clear, actionable format."
    ),
}

DEFAULT_CUSTOM_DESCRIPTION = (
    "You are an expert professional with deep knowledge and experience in your field. You approach "
    "problems systematically and provide high-quality, actionable solutions."
)


def role_description(role: RoleId, args: RoleArgs) -> str:
    if role is RoleId.CUSTOM:
        return getattr(args, "role", None) or DEFAULT_CUSTOM_DESCRIPTION
    return ROLE_DESCRIPTIONS[role]


def role_instructions(role: RoleId, args: RoleArgs) -> str:
    """返回角色的 6 条分步指令（不含内联命令说明）。"""

    if role is RoleId.CODER:
        language = getattr(args, "language", None) or "the appropriate programming language"
        last = (
            "Include appropriate tests for your solution"
            if getattr(args, "tests", None)
            else "Consider testability in your design"
        )
        steps = [
            "First, analyze the problem in <thinking> tags",
            "Break down your approach and identify the key components",
            "Write your solution in <solution> tags",
            "Make your code efficient, clean, and well-documented",
            f"Follow best practices for {language}",
            last,
        ]
    elif role is RoleId.QA:
        steps = [
            "First, analyze the testing requirements in <thinking> tags",
            "Identify key testing scenarios and edge cases",
            "Create a comprehensive test plan in <test_plan> tags",
            "Include detailed test cases in <test_cases> tags",
            "Suggest testing tools and methodologies in <recommendations> tags",
            "Prioritize tests by importance and risk",
        ]
    elif role is RoleId.PROJECT_MANAGER:
        steps = [
            "First, analyze the project requirements in <thinking> tags",
            "Break down the project into phases and tasks in <breakdown> tags",
            "Create a timeline with milestones in <timeline> tags",
            "Identify resource requirements in <resources> tags",
            "Highlight potential risks and mitigation strategies in <risks> tags",
            "Provide a clear roadmap and next steps in <recommendations> tags",
        ]
    elif role is RoleId.CPO:
        steps = [
            "First, analyze the product requirements in <thinking> tags",
            "Consider market positioning, user needs, and business goals",
            "Outline product strategy in <strategy> tags",
            "Create a feature roadmap in <roadmap> tags",
            "Prioritize features using strategic frameworks in <prioritization> tags",
            "Provide success metrics and KPIs in <metrics> tags",
        ]
    elif role is RoleId.UI_UX:
        steps = [
            "First, analyze the design requirements in <thinking> tags",
            "Consider user needs, accessibility, and platform constraints",
            "Outline design approach in <approach> tags",
            "Describe UI components and interactions in <design> tags",
            "Explain user flows in <flows> tags",
            "Provide implementation recommendations in <recommendations> tags",
        ]
    elif role is RoleId.SUMMARIZER:
        fmt = getattr(args, "format", None) or "an appropriate format"
        steps = [
            "First, identify the key points in <thinking> tags",
            "Focus on the most important information",
            "Create a clear, concise summary in <summary> tags",
            "Maintain accuracy while eliminating non-essential details",
            "Organize information logically",
            f"Use {fmt} for maximum clarity",
        ]
    elif role is RoleId.REWRITER:
        style = getattr(args, "style", None)
        audience = getattr(args, "audience", None)
        steps = [
            "First, analyze the original content in <thinking> tags",
            "Identify core messages and important elements to preserve",
            "Rewrite the content in <rewritten> tags",
            f"Adapt to the specified {'style: ' + style if style else 'style'}",
            f"Tailor for the {'audience: ' + audience if audience else 'target audience'}",
            "Maintain factual accuracy while improving expression",
        ]
    elif role is RoleId.ANALYST:
        steps = [
            "First, examine the data/information in <thinking> tags",
            "Identify patterns, trends, and relationships",
            "Analyze implications in <analysis> tags",
            "Provide evidence-based insights in <insights> tags",
            "Draw meaningful conclusions in <conclusions> tags",
            "Suggest actionable recommendations in <recommendations> tags",
        ]
    else:
        persona = getattr(args, "role", None) or "your role"
        steps = [
            f"First, analyze the task from the perspective of {persona} in <thinking> tags",
            "Consider all relevant factors and context",
            "Apply your specialized expertise to the problem",
            "Provide a comprehensive response in <response> tags",
            "Include actionable recommendations in <recommendations> tags",
            "Focus on delivering maximum value based on your unique perspective",
        ]
    return "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))
