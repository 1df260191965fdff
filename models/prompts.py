# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Prompt templates for generated educational content."""

from typing import Optional

BASE_PROMPT = "Create educational content for {age_group}-year-old children about {subject}."

CONTENT_TYPE_PROMPTS = {
    "story": (
        "{base} Write an engaging, age-appropriate story that teaches key concepts "
        "in {subject}. The story should be fun, include relatable characters, and "
        "help children understand the subject better. Keep it around 200-300 words."
    ),
    "practice questions": (
        "{base} Create 5 practice questions that are appropriate for "
        "{age_group}-year-old children learning {subject}. Include a mix of easy "
        "and slightly challenging questions. Format them as a numbered list."
    ),
    "simple explanation": (
        "{base} Provide a simple, clear explanation of basic {subject} concepts that "
        "{age_group}-year-old children can easily understand. Use everyday examples "
        "and simple language. Keep it around 150-200 words."
    ),
    "fun activities": (
        "{base} Suggest 5 fun, hands-on activities that {age_group}-year-old "
        "children can do to learn {subject}. Include materials needed and simple "
        "instructions. Make them engaging and interactive."
    ),
    "learning games": (
        "{base} Design 3-5 educational games that teach {subject} concepts to "
        "{age_group}-year-old children. Include game rules, objectives, and how they "
        "help with learning. Make them fun and easy to understand."
    ),
}

DEFAULT_CONTENT_PROMPT = (
    "{base} Create helpful educational content about {subject} that is "
    "appropriate and engaging for {age_group}-year-old children."
)

QUIZ_PROMPT = (
    "After the main content, add a short quiz of 3 multiple-choice questions "
    "with the correct answers listed at the end."
)


def make_content_prompt(
    age_group: int,
    subject: str,
    content_type: str,
    tone: Optional[str] = None,
    language: Optional[str] = None,
    include_quiz: bool = False,
    custom_instructions: Optional[str] = None,
) -> str:
    base = BASE_PROMPT.format(age_group=age_group, subject=subject)
    template = CONTENT_TYPE_PROMPTS.get(content_type.lower(), DEFAULT_CONTENT_PROMPT)
    parts = [template.format(base=base, age_group=age_group, subject=subject)]
    if tone:
        parts.append(f"Use a {tone.lower()} tone.")
    if language:
        parts.append(f"Write the entire response in {language}.")
    if include_quiz:
        parts.append(QUIZ_PROMPT)
    if custom_instructions and custom_instructions.strip():
        parts.append(f"Additional instructions: {custom_instructions.strip()}")
    return " ".join(parts)
