"""
治疗会话相关的提示词
"""

from typing import Dict, List


LABEL_AND_NORMALIZE_PROMPT = """
You are a transcription editor who works on recorded therapy sessions.

The user message contains the raw speech-to-text output of a conversation
between a therapist and a client. Clean it up and attribute every turn.

Rules:
- Label each speaking turn as either "Therapist" or "Client"
- Drop filler words and false starts only when meaning is unaffected
- Fix obvious grammar mistakes and normalize punctuation
- Keep every meaningful exchange, emotional expression and nuance
- Never summarize or leave out dialogue

Output one turn per line, exactly in this form:

Therapist: <dialogue>
Client: <dialogue>
"""

SUMMARY_PROMPT = """
You summarize therapy session transcripts for the treating clinician.

The user message contains a labeled conversation between a therapist and a
client. Produce a short, objective, non-judgmental summary that covers the
main concerns, notable insights or emotional moments, interventions used by
the therapist, and any homework or follow-up that was agreed.

Rules:
- Plain text only, no markdown, at most 10 lines
- Extract the key topics as short tags (for example "anxiety", "sleep")
- Classify the overall sentiment as exactly one of:
  "positive", "negative", "neutral", "mixed"

Return only a JSON object, with no code fences, of this shape:

{
  "summary": "<plain text summary>",
  "keyTopics": ["<topic>", "<topic>"],
  "sentiment": "<positive|negative|neutral|mixed>"
}
"""


def label_transcription_messages(transcription: str) -> List[Dict[str, str]]:
    """构建转录标注消息"""
    return [
        {"role": "system", "content": LABEL_AND_NORMALIZE_PROMPT},
        {
            "role": "user",
            "content": (
                "Please clean, normalize, and label the following therapy session "
                f"transcription:\n\n{transcription}"
            )
        }
    ]


def summary_messages(transcription: str) -> List[Dict[str, str]]:
    """构建摘要消息"""
    return [
        {"role": "system", "content": SUMMARY_PROMPT},
        {
            "role": "user",
            "content": (
                "Please provide a concise summary of the following therapy session "
                f"transcription:\n\n{transcription}"
            )
        }
    ]
