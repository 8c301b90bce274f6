import json
import logging
import re

from openai import OpenAI

from stepflow.config import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL, check_api_key
from stepflow.models.dsl import Test
from stepflow.scenario.parser import parse_test_record

LOGGER = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$")

SYSTEM_PROMPT = """
You are an expert AQE (Automated Quality Engineer). Your goal is to convert natural language test intent into a structured JSON Test.

Reply with a single JSON object of this shape:
{
  "name": "Short name for the test",
  "steps": [
    {
      "kind": "navigate" | "click" | "type_text" | "assert_text" | "screenshot",
      "name": "Short human readable label for the step",
      "selector": {"kind": "id" | "name" | "linkText" | "partialLinkText" | "css" | "xpath" | "text", "raw": "selector value"},
      "value": "Value for the step"
    }
  ]
}

Guidelines:
1. Reply with the JSON object only, no markdown fences and no commentary.
2. Supported step kinds:
   - 'navigate': Load a URL. value = URL. No selector.
   - 'click': Click an element. selector required. No value.
   - 'type_text': Type text into an element. selector required, value = text.
   - 'assert_text': Check an element's text. selector required, value = expected substring.
   - 'screenshot': Capture the page. value = file name (optional). No selector.
3. Prefer 'id' selectors, then 'name', then 'css'. Use 'text' only for visible labels.
4. Omit "selector" and "value" keys a step kind does not take.
"""


class LLMParser:
    """Turns a free-form description into a Test through an OpenAI chat model."""

    def __init__(self, client=None, model: str = None):
        if client is None:
            check_api_key()
            client = OpenAI(
                api_key=OPENAI_API_KEY,
                base_url=OPENAI_BASE_URL
            )
        self.client = client
        self.model = model or OPENAI_MODEL

    def parse(self, description: str, automation_tool: str = "playwright", target_platform: str = "javascript") -> Test:
        LOGGER.info("Calling LLM: %s...", self.model)
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": description},
            ],
            temperature=0.0,
        )

        # Models sometimes wrap the reply in a markdown fence anyway
        reply = FENCE_PATTERN.sub("", response.choices[0].message.content.strip())
        data = json.loads(reply)
        LOGGER.debug("Parsed JSON: %s", data)
        data["automation_tool"] = automation_tool
        data["target_platform"] = target_platform
        return parse_test_record(data)
