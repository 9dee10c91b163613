"""Pre-written replies used when no generation backend answers."""
import random

LOCAL_FALLBACK_REPLIES = (
    "Oh ! Je t'entends mon petit ami ! 🦊✨ Comment te sens-tu aujourd'hui ?",
    "Salut ! C'est Rusty le renard ! 🦊❤️ Tu veux me parler de quelque chose ?",
    "Bonjour ! Je suis là pour t'écouter. 🦊🌟 Dis-moi ce qui se passe ?",
    "Coucou ! Je suis ton ami renard. 🦊💫 Comment s'est passée ta journée ?",
)

ERROR_FALLBACK_REPLIES = (
    "Je suis un peu fatigué aujourd'hui... 🦊💤 Mais je suis là pour toi !",
    "Oups ! J'ai du mal à réfléchir. 🦊✨ Parle-moi encore, s'il te plaît !",
    "Mon cerveau de renard fait des siestes ! 🦊😴 Réessaye dans un instant !",
)


def pick_reply(pool: tuple[str, ...], rng: random.Random) -> str:
    """Uniform choice from a reply pool."""
    return rng.choice(pool)
