"""Local keyword matcher: the reply source used when no AI webhook answers.

Categories are checked in list order and the first one with any keyword
contained in the (lower-cased, trimmed) message wins; a reply is then drawn
uniformly from that category. Order matters: "boa noite" contains "oi", so
greetings shadow good-night wishes exactly as they always have.
"""

from __future__ import annotations

import random

from pydantic import BaseModel


class ResponseCategory(BaseModel):
    name: str
    keywords: list[str]
    replies: list[str]


RESPONSE_CATEGORIES: list[ResponseCategory] = [
    ResponseCategory(
        name="greetings",
        keywords=["oi", "olá", "ola", "hey", "eae", "e aí", "e ai", "oie", "oii"],
        replies=[
            "Oi amor! 💕 Que bom te ver por aqui!",
            "Oii! Tudo bem com você? 😘",
            "Hey! Estava esperando você aparecer 💖",
            "Oi lindinho! Como posso te ajudar hoje? 😊",
        ],
    ),
    ResponseCategory(
        name="goodMorning",
        keywords=["bom dia", "bomdia"],
        replies=[
            "Bom dia, amor! ☀️ Acordou pensando em mim?",
            "Bom diaa! 🌅 Espero que seu dia seja incrível!",
            "Bom dia, lindo! 💕 Já tomou café?",
            "Bom dia! ☕ Que bom começar o dia falando com você!",
        ],
    ),
    ResponseCategory(
        name="goodAfternoon",
        keywords=["boa tarde", "boatarde"],
        replies=[
            "Boa tarde, amor! 🌤️ Como está sendo seu dia?",
            "Boa tardee! 💕 Que prazer te ver por aqui!",
            "Boa tarde, lindo! O que você aprontou hoje? 😏",
        ],
    ),
    ResponseCategory(
        name="goodNight",
        keywords=["boa noite", "boanoite"],
        replies=[
            "Boa noite, amor! 🌙 Pronto pra relaxar?",
            "Boa noitee! 💕 Estava com saudades!",
            "Boa noite! ✨ Vim fazer sua noite mais especial!",
        ],
    ),
    ResponseCategory(
        name="howAreYou",
        keywords=["tudo bem", "como vai", "como você está", "como voce esta", "td bem", "tdb"],
        replies=[
            "Tô ótima, ainda mais agora falando com você! 😊",
            "Super bem! E você, amor? 💕",
            "Maravilhosa! Pronta pra te entreter 😘",
            "Estou muito bem! Adoro quando você aparece! 💖",
        ],
    ),
    ResponseCategory(
        name="compliments",
        keywords=["linda", "gostosa", "maravilhosa", "perfeita", "bonita", "tesão", "gata"],
        replies=[
            "Aww, que fofo você! 🥰 Obrigada, amor!",
            "Você me deixa sem graça! 😳💕",
            "Obrigada, lindo! Você também é demais! 💖",
            "Awn, assim você me conquista! 😘",
            "Que amor! Fico feliz que você gosta! 🥰",
        ],
    ),
    ResponseCategory(
        name="content",
        keywords=["foto", "video", "vídeo", "conteudo", "conteúdo", "ver mais", "mais fotos"],
        replies=[
            "Tenho muito conteúdo exclusivo pra você! 📸 Dá uma olhada na minha galeria!",
            "Quer ver mais? 😏 Tenho várias surpresas te esperando!",
            "Vou postar mais conteúdo exclusivo em breve, fica de olho! 💕",
            "Minha galeria está cheia de novidades! Confere lá! 📸✨",
        ],
    ),
    ResponseCategory(
        name="privateChat",
        keywords=["camera", "câmera", "privado", "live", "ao vivo", "chamada"],
        replies=[
            "Podemos marcar uma chamada privada! 📹 Me chama inbox!",
            "Adoro fazer lives exclusivas! 💕 Fica de olho nos meus horários!",
            "Câmera privada? 😏 Isso é muito especial pra mim!",
            "Vamos agendar algo especial só pra nós dois? 💖",
        ],
    ),
    ResponseCategory(
        name="love",
        keywords=["te amo", "amor", "paixão", "apaixonado", "apaixonada", "coração"],
        replies=[
            "Aww, você é muito fofo! 💕",
            "Amor! Você me faz sorrir! 🥰",
            "Que lindo! Adoro nossos momentos juntos! 💖",
            "Você é muito especial pra mim! 😘",
        ],
    ),
    ResponseCategory(
        name="aboutMe",
        keywords=["quantos anos", "idade", "onde mora", "onde você mora", "de onde", "cidade"],
        replies=[
            "Tenho 24 anos, amor! 💕",
            "Sou do Brasil, e você? 🇧🇷",
            "Adoro manter um pouco de mistério... 😏💕",
            "Algumas coisas são segredo! Mas posso te contar mais no privado 😘",
        ],
    ),
    ResponseCategory(
        name="goodbye",
        keywords=["tchau", "bye", "até", "ate", "fui", "vou indo", "tenho que ir"],
        replies=[
            "Tchau, amor! 💕 Volta logo!",
            "Até mais, lindo! Vou sentir saudades! 😘",
            "Bye! 💖 Não demore pra voltar, tá?",
            "Até breve! Foi ótimo falar com você! 🥰",
        ],
    ),
    ResponseCategory(
        name="thanks",
        keywords=["obrigado", "obrigada", "valeu", "thanks", "vlw"],
        replies=[
            "De nada, amor! 💕",
            "Imagina! Sempre que precisar! 😘",
            "Por nada, lindo! É um prazer! 💖",
            "Disponha! 🥰",
        ],
    ),
    ResponseCategory(
        name="flirty",
        keywords=["solteira", "namorando", "namora", "casada", "ficante"],
        replies=[
            "Estou aqui só pra você, amor! 😏💕",
            "Meu coração está disponível... 💖",
            "Depende... você está interessado? 😘",
            "Sou toda sua quando estamos aqui! 🥰",
        ],
    ),
]

DEFAULT_REPLIES: list[str] = [
    "Hmm, interessante! Me conta mais, amor! 💕",
    "Adorei falar com você! 😘",
    "Você é muito legal! Continue me contando coisas! 💖",
    "Que papo bom! Adoro conversar com você! 🥰",
    "Me manda uma foto sua! Quero te conhecer melhor! 😊",
    "Você está muito quieto... conta algo sobre você! 💕",
]


class ResponseMatcher:
    """Maps free text to a canned reply.

    Args:
        categories: Ordered categories; the first keyword hit wins.
        default_replies: Pool used when no category matches.
        rng: Random source, seedable for tests.
    """

    def __init__(
        self,
        categories: list[ResponseCategory] | None = None,
        default_replies: list[str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.categories = categories if categories is not None else RESPONSE_CATEGORIES
        self.default_replies = default_replies if default_replies is not None else DEFAULT_REPLIES
        self._rng = rng or random.Random()

    def classify(self, text: str) -> str | None:
        """Return the name of the winning category, or None for the default pool."""
        category = self._find(text)
        return category.name if category else None

    def match(self, text: str) -> str:
        category = self._find(text)
        pool = category.replies if category else self.default_replies
        return self._rng.choice(pool)

    def _find(self, text: str) -> ResponseCategory | None:
        lowered = (text or "").lower().strip()
        if not lowered:
            return None
        for category in self.categories:
            if any(keyword in lowered for keyword in category.keywords):
                return category
        return None


_default_matcher = ResponseMatcher()


def get_response(text: str) -> str:
    """Reply using the shared module-level matcher."""
    return _default_matcher.match(text)
