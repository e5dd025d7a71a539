# parley/nlp/languages.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

LATIN = "latin"
CYRILLIC = "cyrillic"
HANGUL = "hangul"
HAN = "han"

SCRIPTS: Tuple[str, ...] = (LATIN, CYRILLIC, HANGUL, HAN)

_TRANSCRIBE_TEMPLATE = (
    "Transcribe accurately. If speaking {name} with an accent, write in {script_name}. "
    "If speaking another language, transcribe in that language. "
    "Don't convert - just transcribe what you hear."
)

_SCRIPT_NAMES = {
    LATIN: "Latin script",
    CYRILLIC: "Cyrillic",
    HANGUL: "Hangul",
    HAN: "Chinese characters",
}


@dataclass(frozen=True)
class LanguageProfile:
    code: str
    name: str
    native_name: str
    script: str
    keywords: Tuple[str, ...]
    warning_message: str
    # Whether the ASR service should be forced to this language or left to auto-detect.
    force_language_hint: bool = True
    # Extra lines for the translation system prompt (minimal pairs against a confusable language).
    translation_hints: Tuple[str, ...] = ()
    confusable_with: Tuple[str, ...] = ()
    # Ordered (wrong, right) replacements applied when this language is expected.
    corrections: Tuple[Tuple[str, str], ...] = ()
    # Keywords are matched as substrings instead of whole tokens (no word spacing).
    substring_keywords: bool = False
    transcription_prompt: str = field(default="")

    @property
    def label(self) -> str:
        if self.native_name and self.native_name != self.name:
            return f"{self.name} ({self.native_name})"
        return self.name

    def prompt_for_transcription(self) -> str:
        if self.transcription_prompt:
            return self.transcription_prompt
        return _TRANSCRIBE_TEMPLATE.format(name=self.name, script_name=_SCRIPT_NAMES[self.script])


_PROFILES: Tuple[LanguageProfile, ...] = (
    LanguageProfile(
        code="en",
        name="English",
        native_name="English",
        script=LATIN,
        keywords=(
            "the", "and", "is", "are", "was", "were", "you", "i", "he", "she", "we", "they",
            "it", "this", "that", "what", "where", "when", "why", "how", "who", "have", "has",
            "do", "does", "will", "would", "can", "could", "please", "thank", "thanks",
            "hello", "hi", "yes", "no", "sorry", "help", "good", "of", "to", "in", "my", "your",
        ),
        warning_message="Please speak in English",
        transcription_prompt=(
            "Transcribe this audio accurately. If speaking English with an accent, write clear English. "
            "If speaking Korean, Chinese, Russian, or another language, transcribe in that language. "
            "Don't convert languages - just transcribe what you hear."
        ),
    ),
    LanguageProfile(
        code="ko",
        name="Korean",
        native_name="한국어",
        script=HANGUL,
        keywords=(
            "안녕", "감사", "어떻게", "무엇", "언제", "어디", "누구", "좋아", "우리", "그들",
            "빨리", "천천히", "도움", "부탁", "미안", "실례", "아니요", "저는", "제가",
        ),
        warning_message="한국어로 말해주세요",
        substring_keywords=True,
    ),
    LanguageProfile(
        code="zh",
        name="Chinese",
        native_name="中文",
        script=HAN,
        keywords=(
            "你好", "谢谢", "怎么", "什么", "哪里", "我们", "你们", "他们", "这个", "那个",
            "这里", "那里", "请", "对不起", "帮助", "我", "你", "是", "的", "了", "不",
        ),
        warning_message="请说中文",
        substring_keywords=True,
    ),
    LanguageProfile(
        code="ru",
        name="Russian",
        native_name="Русский",
        script=CYRILLIC,
        keywords=(
            "привет", "здравствуйте", "спасибо", "пожалуйста", "извините", "хорошо", "плохо",
            "как", "что", "когда", "где", "кто", "это", "они", "она", "мы", "ты", "да", "нет",
            "очень", "сейчас", "можно",
        ),
        warning_message="Говорите по-русски",
    ),
    LanguageProfile(
        code="ky",
        name="Kyrgyz",
        native_name="Кыргызча",
        script=CYRILLIC,
        keywords=(
            "салам", "рахмат", "жакшы", "кантип", "эмне", "качан", "кайда", "ким", "кандай",
            "улуу", "кичине", "мен", "сен", "биз", "силер", "алар", "тез", "жардам",
            "сураныч", "кечиресиз", "ооба", "жок", "ачка", "барабыз",
        ),
        warning_message="Кыргызча сүйлөңүз",
        force_language_hint=False,
        translation_hints=(
            "This is KYRGYZ (Кыргызча), NOT Kazakh (Қазақша).",
            "Use ONLY Kyrgyz-specific vocabulary and grammar patterns.",
            'Common Kyrgyz words: "салам" (hello), "рахмат" (thank you), "жакшы" (good), '
            '"кантип" (how), "эмне" (what).',
            'Kyrgyz "рахмат" / Kazakh "рахмет"; Kyrgyz "жакшы" / Kazakh "жақсы".',
            "Do NOT use Kazakh letters such as қ, ғ, ә, і, ұ or Kazakh vocabulary.",
        ),
        confusable_with=("kk",),
        corrections=(
            ("сәлем", "салам"),
            ("жақсы", "жакшы"),
            ("рахмет", "рахмат"),
            ("қалай", "кантип"),
            ("қазақша", "кыргызча"),
            ("қазақстан", "кыргызстан"),
            ("қазақ", "кыргыз"),
            ("қ", "к"),
            ("ғ", "г"),
            ("ә", "а"),
            ("і", "и"),
            ("ұ", "у"),
            ("һ", "х"),
        ),
        transcription_prompt=(
            "Transcribe this audio accurately. If the speaker is speaking Kyrgyz (Кыргызча) with an accent, "
            "write it in Cyrillic script. If they're speaking English, Korean, Chinese, or another language, "
            "transcribe it in that language's native script. Be accurate - don't convert languages. "
            "Common Kyrgyz words: мен ачка (I'm hungry), сиздин атыңыз ким (what's your name), "
            "салам (hello), рахмат (thank you)."
        ),
    ),
    LanguageProfile(
        code="kk",
        name="Kazakh",
        native_name="Қазақша",
        script=CYRILLIC,
        keywords=(
            "сәлем", "рахмет", "жақсы", "қалай", "қашан", "қайда", "кім", "үлкен", "кіші",
            "біз", "сіздер", "олар", "жылдам", "көмек", "өтінемін", "кешіріңіз", "иә", "жоқ",
        ),
        warning_message="Қазақша сөйлеңіз",
        translation_hints=(
            "This is KAZAKH (Қазақша), NOT Kyrgyz (Кыргызча).",
            'Common Kazakh words: "сәлем" (hello), "рахмет" (thank you), "жақсы" (good).',
            'Kazakh "рахмет" / Kyrgyz "рахмат"; Kazakh "жақсы" / Kyrgyz "жакшы".',
            "Do NOT use Kyrgyz words or spelling.",
        ),
        confusable_with=("ky",),
    ),
    LanguageProfile(
        code="tg",
        name="Tajik",
        native_name="Тоҷикӣ",
        script=CYRILLIC,
        keywords=(
            "салом", "раҳмат", "чӣ", "вақт", "куҷо", "кӣ", "хуб", "калон", "хурд", "ман",
            "шумо", "онҳо", "зуд", "оҳиста", "кумак", "лутфан", "бахшед", "ҳа",
        ),
        warning_message="Тоҷикӣ гап занед",
    ),
    LanguageProfile(
        code="uk",
        name="Ukrainian",
        native_name="Українська",
        script=CYRILLIC,
        keywords=(
            "привіт", "дякую", "будь", "ласка", "вибачте", "добре", "погано", "як", "що",
            "коли", "де", "хто", "це", "ми", "ти", "вони", "так", "ні", "дуже",
        ),
        warning_message="Говоріть українською",
    ),
    LanguageProfile(
        code="tk",
        name="Turkmen",
        native_name="Türkmençe",
        script=LATIN,
        keywords=(
            "salam", "sag", "bol", "näme", "haçan", "nire", "gowy", "erbet", "uly", "kiçi",
            "olar", "çalt", "haýyş", "bagyşlaň", "kömek", "hawa", "ýok",
        ),
        warning_message="Türkmençe gürleň",
    ),
    LanguageProfile(
        code="uz",
        name="Uzbek",
        native_name="O'zbekcha",
        script=LATIN,
        keywords=(
            "salom", "rahmat", "qanday", "nima", "qachon", "qayerda", "yaxshi", "yomon",
            "katta", "kichik", "sizlar", "ular", "sekin", "yordam", "iltimos", "kechirasiz",
            "ha", "yo'q",
        ),
        warning_message="O'zbekcha gapiring",
    ),
)

LANGUAGES: Dict[str, LanguageProfile] = {p.code: p for p in _PROFILES}

DEFAULT_WARNING = "Please speak in the selected language."


def get_profile(code: Optional[str]) -> Optional[LanguageProfile]:
    if not code:
        return None
    return LANGUAGES.get(code.strip().lower())


def language_name(code: str) -> str:
    profile = get_profile(code)
    return profile.name if profile is not None else code


def warning_for(code: str) -> str:
    profile = get_profile(code)
    return profile.warning_message if profile is not None else DEFAULT_WARNING


def languages_for_script(script: str) -> Tuple[str, ...]:
    return tuple(p.code for p in _PROFILES if p.script == script)


def all_keywords() -> frozenset:
    words: set[str] = set()
    for profile in _PROFILES:
        words.update(k.lower() for k in profile.keywords)
    return frozenset(words)
