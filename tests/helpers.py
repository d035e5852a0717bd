"""Model doubles shared by the agent and API tests."""

from ash.llm import ModelReply, OllamaClient, ToolCall


class ScriptedLLM(OllamaClient):
    """Returns queued replies (or raises queued exceptions) in order."""

    def __init__(self, *script):
        super().__init__(host="http://llm.test", model="test-model", timeout=1)
        self.script = list(script)
        self.calls = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        if not self.script:
            raise AssertionError("ScriptedLLM called more times than scripted")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def ping(self):
        return True


def text_reply(text):
    return ModelReply(text=text, message={"role": "assistant", "content": text})


def tool_reply(*calls, text=""):
    tool_calls = [ToolCall(name=name, arguments=args) for name, args in calls]
    message = {
        "role": "assistant",
        "content": text,
        "tool_calls": [{"function": {"name": c.name, "arguments": c.arguments}} for c in tool_calls],
    }
    return ModelReply(text=text, tool_calls=tool_calls, message=message)
