"""Deterministic template replies used when no provider answer is available."""

from __future__ import annotations

import random
import re
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .knowledge import KnowledgeBase, get_knowledge_base

GUIDANCE_REPLY = (
    "请输入你的问题，我会尽力为你解答。你可以问我关于编程、AI、Web开发或其他任何你感兴趣的话题。"
)

OPENINGS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "greeting": (
            "你好！我是你的智能助手，专注于为你提供高质量的问答服务。有什么我可以帮助你的吗？",
            "欢迎使用智能助手！我在这里为你解答各种问题，提供专业建议。",
            "你好！很高兴为你服务。请告诉我你需要什么帮助，我会尽我所能为你解答。",
        ),
        "programming": (
            "这是一个很好的编程问题！让我为你详细分析...",
            "在编程领域，这个问题确实值得深入探讨...",
            "作为你的编程助手，我来帮你解决这个技术问题...",
        ),
        "ai": (
            "人工智能是一个引人入胜的领域！关于你的问题...",
            "在AI和机器学习方面，我可以为你提供以下见解...",
            "这是一个很有前瞻性的AI问题，让我来分析一下...",
        ),
        "web": (
            "Web开发是我的专长之一！针对你的问题...",
            "在现代Web开发中，这确实是一个重要的考虑因素...",
            "让我从全栈开发的角度来回答你的问题...",
        ),
        "general": (
            "这是一个很有意思的问题，让我来为你分析...",
            "基于我的理解，我认为可以从以下几个方面来看这个问题...",
            "感谢你的提问！我来为你提供一些有用的见解...",
        ),
    }
)

CONTEXT_MIN_QUERY_LENGTH = 20
QUERY_ECHO_LENGTH = 100

_GREETING_RE = re.compile(r"^\s*(你好|您好|嗨|hello|hi|hey)[\s!！。,，~]*$", re.IGNORECASE)
_HOW_RE = re.compile(r"如何|怎么|怎样|\bhow\b", re.IGNORECASE)
_WHAT_RE = re.compile(r"什么|\bwhat\b", re.IGNORECASE)
_COMPARE_RE = re.compile(r"比较|区别|对比|\bcompare\b|\bdifference\b|\bvs\b", re.IGNORECASE)

CLOSING = "如果你需要更具体的指导或有其他相关问题，请随时告诉我！我会根据你的具体情况提供更有针对性的建议。"


def steps_block(query: str) -> str:
    echo = query[:QUERY_ECHO_LENGTH] + ("..." if len(query) > QUERY_ECHO_LENGTH else "")
    return (
        f"针对\"{echo}\"这个问题，我建议采用以下步骤：\n\n"
        "1. **分析需求**: 首先明确你想要达到的目标\n"
        "2. **制定计划**: 将大问题分解为小的可执行步骤\n"
        "3. **实施方案**: 逐步执行并监控进展\n"
        "4. **优化改进**: 根据结果调整和优化方案"
    )


EXPLAIN_BLOCK = (
    "关于你询问的概念，让我为你详细解释：\n\n"
    "这个问题涉及到多个方面的知识，我会尽量用通俗易懂的方式来说明。"
)

COMPARE_BLOCK = (
    "让我为你详细比较这些概念的异同：\n\n"
    "我会从多个维度来分析，帮助你更好地理解它们的特点和适用场景。"
)


class TemplateResponder:
    """Builds replies from fixed templates; never raises for string input."""

    def __init__(
        self,
        knowledge: Optional[KnowledgeBase] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.knowledge = knowledge or get_knowledge_base()
        self._rng = rng or random.Random()

    def openings(self, query: str, topic: str) -> Tuple[str, ...]:
        """Candidate first sentences for a (query, topic) pair."""
        if topic == self.knowledge.default_topic and _GREETING_RE.match(query):
            return OPENINGS["greeting"]
        return OPENINGS.get(topic) or OPENINGS["general"]

    def structure_block(self, query: str) -> str:
        if _HOW_RE.search(query):
            return steps_block(query)
        if _WHAT_RE.search(query):
            return EXPLAIN_BLOCK
        if _COMPARE_RE.search(query):
            return COMPARE_BLOCK
        return ""

    def respond(self, query: str, topic: str) -> str:
        parts = [self._rng.choice(self.openings(query, topic))]

        detailed = len(query) > CONTEXT_MIN_QUERY_LENGTH
        if detailed:
            parts.append(self.knowledge.context_for(topic))

        block = self.structure_block(query)
        if block:
            parts.append(block)

        if detailed or block:
            parts.append(CLOSING)
        return "\n\n".join(part for part in parts if part)


__all__ = ["GUIDANCE_REPLY", "OPENINGS", "TemplateResponder"]
