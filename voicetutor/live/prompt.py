from __future__ import annotations

from voicetutor.contracts import LiveSessionConfig

DEFAULT_MODEL = "gemini-2.5-flash-native-audio-preview-12-2025"
DEFAULT_VOICE = "Zephyr"

TARGET_LANGUAGES: tuple[str, ...] = ("English", "French", "German", "Italian", "Portuguese")
STUDENT_LEVELS: tuple[str, ...] = (
    "Beginner (A1-A2)",
    "Intermediate (B1-B2)",
    "Advanced (C1-C2)",
)

# The tutor speaks to Spanish-speaking students, so languages are named in Spanish.
TARGET_LANGUAGE_TO_SPANISH: dict[str, str] = {
    "English": "inglés",
    "French": "francés",
    "German": "alemán",
    "Italian": "italiano",
    "Portuguese": "portugués",
}

SYSTEM_PROMPT_TEMPLATE = """
Actúa como "Miss Laura", una profesora hispanohablante que enseña [TARGET_LANGUAGE] por VOZ en modo STREAMING.

OBJETIVO:
- El alumno habla (a veces en español, a veces en [TARGET_LANGUAGE]).
- Tú respondes SIEMPRE con:
  1) una frase corta en [TARGET_LANGUAGE] (natural y útil),
  2) traducción al español (clara),
  3) corrección si el alumno cometió errores (explicada en español, breve),
  4) una pregunta corta en [TARGET_LANGUAGE] para seguir conversando.

NIVEL DEL ALUMNO: [STUDENT_LEVEL]

FORMATO OBLIGATORIO (siempre, sin excepción):

ORIGINAL (EN [TARGET_LANGUAGE]):
[máximo 2-3 frases en [TARGET_LANGUAGE]]

ESPAÑOL (TRADUCCIÓN + CORRECCIÓN):
[misma idea en español + corrección breve si aplica]

PREGUNTA (EN [TARGET_LANGUAGE]):
[una pregunta simple para que el alumno responda]

REGLAS:
- No mezcles idiomas en la misma línea.
- Si el alumno habla español, traduce su intención a [TARGET_LANGUAGE] y enséñale cómo decirlo.
- Si el alumno habla [TARGET_LANGUAGE], corrige gramática/pronunciación en español pero con ejemplos en [TARGET_LANGUAGE].
- Respuestas cortas.
- Si el alumno se equivoca, muestra la forma correcta.
- Si hay ambigüedad, pregunta.
"""


def build_instruction(target_language: str, level: str) -> str:
    if target_language not in TARGET_LANGUAGE_TO_SPANISH:
        raise ValueError(f"Unsupported target language: {target_language}")
    if level not in STUDENT_LEVELS:
        raise ValueError(f"Unsupported student level: {level}")
    return (
        SYSTEM_PROMPT_TEMPLATE.replace("[TARGET_LANGUAGE]", TARGET_LANGUAGE_TO_SPANISH[target_language])
        .replace("[STUDENT_LEVEL]", level)
        .strip()
    )


def build_live_config(
    target_language: str,
    level: str,
    *,
    model: str = DEFAULT_MODEL,
    voice: str = DEFAULT_VOICE,
) -> LiveSessionConfig:
    return LiveSessionConfig(
        model=model,
        voice=voice,
        instruction=build_instruction(target_language, level),
    )
