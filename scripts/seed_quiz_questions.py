"""Seed the cultural verification quiz into the quiz_questions reference table.

Re-running updates existing rows in place, so answer keys can be corrected
without touching submitted results.
"""
import asyncio
import sys
sys.path.insert(0, ".")

from sqlalchemy import select
from redplad.database import async_session_factory, engine
from redplad.models.quiz import QuizQuestion


QUIZ_QUESTIONS = [
    {
        "question_number": 1,
        "question_text": "In Igbo culture, what is the significance of the kola nut ceremony?",
        "options": [
            "It's purely decorative",
            "It's a way to welcome guests and show respect",
            "It's only used for religious ceremonies",
            "It's a form of payment",
        ],
        "correct_option": 1,
        "category": "West African Traditions",
        "difficulty": "medium",
    },
    {
        "question_number": 2,
        "question_text": "What does 'Ubuntu' mean in South African philosophy?",
        "options": [
            "Individual achievement",
            "I am because we are - interconnectedness of humanity",
            "Religious devotion",
            "Financial prosperity",
        ],
        "correct_option": 1,
        "category": "Philosophy & Values",
        "difficulty": "medium",
    },
    {
        "question_number": 3,
        "question_text": "In Ethiopian culture, what is the traditional coffee ceremony called?",
        "options": ["Bunna", "Café", "Kahawa", "Buna"],
        "correct_option": 0,
        "category": "East African Traditions",
        "difficulty": "easy",
    },
    {
        "question_number": 4,
        "question_text": "What is the importance of naming ceremonies in many African cultures?",
        "options": [
            "It's just a celebration",
            "It connects the child to ancestors and community identity",
            "It's required by law",
            "It determines the child's profession",
        ],
        "correct_option": 1,
        "category": "Cultural Practices",
        "difficulty": "medium",
    },
    {
        "question_number": 5,
        "question_text": "In West African culture, what role do griots traditionally play?",
        "options": [
            "Only musicians",
            "Storytellers, historians, and keepers of oral tradition",
            "Religious leaders only",
            "Government officials",
        ],
        "correct_option": 1,
        "category": "Cultural Roles",
        "difficulty": "hard",
    },
]


async def seed():
    async with async_session_factory() as session:
        for q in QUIZ_QUESTIONS:
            result = await session.execute(
                select(QuizQuestion).where(QuizQuestion.question_number == q["question_number"])
            )
            existing = result.scalar_one_or_none()
            if existing is None:
                session.add(QuizQuestion(**q))
                print(f"  Seeded question {q['question_number']}: {q['category']}")
            else:
                for field, value in q.items():
                    setattr(existing, field, value)
                print(f"  Question {q['question_number']} already exists, updated.")
        await session.commit()
    await engine.dispose()
    print("Done seeding quiz questions.")


if __name__ == "__main__":
    asyncio.run(seed())
