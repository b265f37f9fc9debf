from unittest.mock import AsyncMock, MagicMock

import pytest

from scorer.storage.memory import MemoryArticleStore

SCENARIO_HTML = (
    '<html><body><script>x</script>'
    '<div class="rich_media_title">Hello World Title</div>'
    '<div id="meta_content">2024-01-01</div>'
    '<div class="rich_media_content">Full body text here exceeding twenty characters.</div>'
    '</body></html>'
)

SCENARIO_EXTRACTED = (
    '<html><body>'
    '<div data-title="">Hello World Title</div>'
    '<div data-meta="">2024-01-01</div>'
    '<div data-content="">Full body text here exceeding twenty characters.</div>'
    '</body></html>'
)

VALID_AI_RESPONSE = """
{
  "index": {
    "refCount": 3,
    "diseasePrinciple": true,
    "localRelevance": false,
    "mainDoctorTitle": "主任医师",
    "storyCount": 1
  },
  "summary": {
    "refCount": "引用了三项流行病学数据",
    "diseasePrinciple": "解释了发病机制",
    "localRelevance": "未涉及本地内容",
    "mainDoctorTitle": "科普人员为主任医师",
    "storyCount": "讲述了一个患者案例"
  }
}
"""


@pytest.fixture
def scenario_html():
    return SCENARIO_HTML


@pytest.fixture
def scenario_extracted():
    return SCENARIO_EXTRACTED


@pytest.fixture
def valid_ai_response():
    return VALID_AI_RESPONSE


@pytest.fixture
def store():
    return MemoryArticleStore()


@pytest.fixture
def browser_pool():
    pool = MagicMock()
    pool.fetch_page = AsyncMock(return_value=SCENARIO_HTML)
    pool.fetch_pages = AsyncMock(side_effect=lambda urls, options=None: [SCENARIO_HTML for _ in urls])
    return pool
