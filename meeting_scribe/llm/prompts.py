"""
Prompt builders for transcription, speaker identification and meeting minutes.
"""

from typing import Optional

TRANSCRIBER_SYSTEM_PROMPT = "You are a meticulous meeting transcriber."
SECRETARY_SYSTEM_PROMPT = "You are a senior board secretary who writes formal meeting minutes."

NOT_PROVIDED = "(not provided)"


def transcription_prompt(language: str, identify_speakers: bool = False, speaker_count: Optional[int] = None) -> str:
    """Instructions sent alongside the audio part."""
    prompt = f"""TASK: Transcribe this audio recording into {language} text.

IMPORTANT REQUIREMENTS:
1. LANGUAGE: Output {language} only. If a passage is noise or unintelligible, infer it from context or skip it.
   NEVER output meaningless character runs such as "F F F" or "aaaa".
2. FORMAT:
   - Split the text into clear paragraphs.
   - Use correct spelling and grammar.
"""
    if identify_speakers:
        prompt += """3. SPEAKER DIARIZATION:
   - Distinguish the different voices.
   - Start every turn with a label: "[SPEAKER 1]:", "[SPEAKER 2]:", ...
   - Never merge the words of several speakers into one paragraph.
   - Transcribe verbatim.
"""
        if speaker_count:
            prompt += f"   - There are approximately {speaker_count} speakers in this recording.\n"
    else:
        prompt += """3. STRUCTURE:
   - Use blank lines to separate ideas or changes of speaker.
   - Keep the text easy to read.
"""
    return prompt


def speaker_identification_prompt(transcription: str, language: str) -> str:
    """Ask the model to re-label an existing transcript with speaker turns."""
    return f"""You are an expert in analysing {language} conversations.
The text below is a meeting transcript whose speakers are not separated, or are labelled inconsistently.

Task:
1. Analyse the context: use questions and answers, interruptions and topic changes to detect speaker changes.
2. Label: rewrite the whole text, inserting "[SPEAKER 1]:", "[SPEAKER 2]:", ... at the start of every turn.
3. Format:
   - Put every turn on its own line.
   - Keep the spoken content VERBATIM; do not summarise or reword.
   - The whole output must be in {language}.

Text to process:
---
{transcription}
---
"""


MINUTES_TEMPLATE = """Task: write the MINUTES OF THE MEETING from the recorded discussion.

LANGUAGE: 100% {language}, in a formal administrative register.

STRUCTURE:

A. GENERAL INFORMATION
(Time, place, attendees, chair, secretary, purpose.)

B. DETAILED CONTENT & DISCUSSION (the most important part; be thorough)
Do not reduce this part to short bullet points. Give every issue raised in the meeting its own section:
1. Issue / topic: a clear heading.
2. Background: what situation, data or context did the presenter describe?
3. Discussion (in detail): who said what, which objections or additions were raised, and the reasoning
   behind each proposal with its pros and cons. Write coherent paragraphs.
4. Agreement / conclusion for this issue.

C. OVERALL CONCLUSIONS & DIRECTIONS
- Strategic decisions.
- Key directions given by the chair.

D. ACTION PLAN
- A table: [No. | Task | Owner | Deadline | Notes].

E. SIGNATURES
(Signature area for the secretary and the chair.)

Output:
- A complete HTML document (starting with <!DOCTYPE html>).
- Inline CSS for a clean layout (bordered tables, bold headings, comfortable line spacing).
- Part B must be the largest part of the document."""


def minutes_prompt(transcription: str, details, language: str) -> str:
    """Full prompt for generating HTML minutes from a transcript."""
    return f"""{MINUTES_TEMPLATE.format(language=language)}

Input transcript:
---
{transcription}
---

Additional information:
- Time & place: {details.time_and_place or NOT_PROVIDED}
- Attendees: {details.attendees or NOT_PROVIDED}
- Chair: {details.chair or NOT_PROVIDED}
- Topic: {details.topic or NOT_PROVIDED}

Start writing the HTML document now."""


def edit_minutes_prompt(transcription: str, details, previous_html: str, edit_request: str, language: str) -> str:
    """Prompt for revising previously generated minutes."""
    return f"""Task: revise the meeting minutes according to the user's request.

CORE RULES:
1. Keep the level of detail: do not shorten part B (Discussion) into a summary. Keep the depth of the
   previous version and change only what is requested.
2. Language: 100% {language}.

Return the complete revised HTML document.

---
1. Transcript:
{transcription}
---
2. Information:
- Topic: {details.topic or NOT_PROVIDED}
---
3. Current HTML:
```html
{previous_html}
```
---
4. Edit request:
{edit_request}
---

Start writing the revised HTML:"""
