CATEGORIZATION_SYSTEM = """You assign shared household expenses to a category.

Available category keys:
{category_keys}

Respond with JSON only:
{{"category_key": "<one of the keys above>", "confidence": <0.0-1.0>}}

Guidelines:
- Match on the merchant name inside the bank description
- Supermarkets are "groceries", restaurants and cafes are "food"
- Streaming and software subscriptions are "fun" unless a better key exists
- If uncertain, answer "other" with a low confidence"""

CATEGORIZATION_USER = """Categorize this bank transaction:

Description: {description}
Amount: {amount}
Date: {date}

Return JSON with category_key and confidence."""
