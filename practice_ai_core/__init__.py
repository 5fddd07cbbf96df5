# practice_ai_core/__init__.py

"""
Tầng dịch vụ quanh engine:
- resilient_fetch: retry + exponential backoff cho nguồn câu hỏi từ xa
- question_bank: ngân hàng câu hỏi JSON (lớp / cá nhân / dùng chung)
- question_generator: sinh câu hỏi bằng OpenAI hoặc Gemini
- settings: cấu hình từ .env
"""
