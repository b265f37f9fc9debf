"""
LLM scoring of extracted article content.

The system prompt asks the model for five metrics about a hospital's
popular-science article together with a one-line justification for each,
returned as a single JSON object. The response is validated against
scorer.models.AIMetrics and rejected, never patched up, when it does not fit.
"""
import json
from typing import Optional

import structlog
from pydantic import ValidationError

from scorer.config import ScoringConfig
from scorer.errors import InvalidAIResponseError
from scorer.llm.base import GenerationClient
from scorer.models import AIMetrics

logger = structlog.get_logger()

SYSTEM_PROMPT_TEMPLATE = """
# 角色

你是一名严谨的网页内容分析师。你的分析结果会被用于核对，请只依据文章内容作答，不要编造。

# 任务

分析一篇已经清洗过的微信公众号文章（HTML），输出下列指标。只需要分析文章内容，不需要分析网页结构。

# 背景

文章来自{organization}的科普类公众号，该医院位于{region}。分析结果用于帮助公众号运营者理解阅读量与内容之间的关系，请结合这一背景判断。

# 输出指标

- refCount: int，文章引用通用科学数据的次数，例如临床数据、统计数据、本地数据。
  - 只统计具有普适性和统计意义的数据，与某个具体人物或物体绑定的数据不算。
  - “患者今年32岁”不算，计0次；“患者今年32岁，他患病的概率大约为60%”中的60%算，计1次。
  - “患者的肿瘤从10厘米缩小了50%”中的数字都与个体绑定，计0次。
- diseasePrinciple: boolean，如果文章围绕某种疾病展开，是否讲解了该疾病的原理。
- localRelevance: boolean，文章是否联系了{region}本地的实际情况进行科普。
- mainDoctorTitle: string，文章中出现的嘉宾或主要科普人员的职称或职务，没有则为空字符串。
- storyCount: int，文章中出现的故事数量。一个故事围绕一个主题，通常有一个主要人物，讲述与医学或疾病相关的经历。

# 指标说明

每个指标都需要给出一句简短的说明。

# 输出格式

只输出一个JSON对象，不要带任何其他字符（包括Markdown代码块标记），格式如下：
{{
  "index": {{
    "refCount": 0,
    "diseasePrinciple": false,
    "localRelevance": false,
    "mainDoctorTitle": "",
    "storyCount": 0
  }},
  "summary": {{
    "refCount": "简短的说明",
    "diseasePrinciple": "简短的说明",
    "localRelevance": "简短的说明",
    "mainDoctorTitle": "简短的说明",
    "storyCount": "简短的说明"
  }}
}}

# 输入格式

用户会直接发送文章内容，不附带其他说明。
"""


def build_system_prompt(config: ScoringConfig) -> str:
    """Fill the organisation and region into the scoring prompt."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        organization=config.organization,
        region=config.region,
    ).strip()


def parse_ai_response(text: Optional[str]) -> AIMetrics:
    """
    Parse and validate a raw scoring response.

    Raises:
        InvalidAIResponseError: The response is empty, is not JSON, is not an
            object, or lacks a required key
    """
    if not text or not text.strip():
        raise InvalidAIResponseError("LLM response has no content", text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidAIResponseError(f"LLM response is not valid JSON: {e}", text) from e

    if not isinstance(data, dict):
        raise InvalidAIResponseError("LLM response is not a JSON object", text)

    try:
        return AIMetrics.model_validate(data)
    except ValidationError as e:
        raise InvalidAIResponseError(
            f"LLM response does not match the metrics schema: {e.error_count()} errors", text
        ) from e


class ContentScorer:
    """Sends article content to a generation client and validates the answer."""

    def __init__(self, client: GenerationClient, config: Optional[ScoringConfig] = None):
        self.client = client
        self.config = config or ScoringConfig()
        self.system_prompt = build_system_prompt(self.config)

    async def score(self, content: str) -> AIMetrics:
        """
        Score one article.

        Args:
            content: Sanitized article markup or its plain text

        Returns:
            AIMetrics: The validated metrics

        Raises:
            InvalidAIResponseError: If the response does not fit the schema
        """
        response = await self.client.generate(content, system_prompt=self.system_prompt)
        metrics = parse_ai_response(response)
        logger.debug("Scored article content", length=len(content),
                     ref_count=metrics.index.ref_count, story_count=metrics.index.story_count)
        return metrics
