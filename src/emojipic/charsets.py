def split_symbols(text: str) -> list[str]:
    """Split a string into symbols, keeping variation selectors and ZWJ sequences attached."""
    symbols: list[str] = []
    for char in text:
        code = ord(char)
        joiner = symbols and symbols[-1].endswith("\u200d")
        if symbols and (joiner or code == 0x200D or 0xFE00 <= code <= 0xFE0F or 0x1F3FB <= code <= 0x1F3FF):
            symbols[-1] += char
        else:
            symbols.append(char)
    return symbols


# A spread of emoji covering the colour wheel plus greys
_EMOJI_TEXT = (
    # reds and pinks
    "🍎🍓🍒🌹🌶️🥩🍉❤️🛑🎈🍅🦞🦀🍄💋👠🌺🌸💗🐷"
    # oranges and browns
    "🍊🥕🎃🦊🏀🍑🧡🥮🍞🥔🐻🪵🟫🍫🥜🐴🦁🧇🍂🌰"
    # yellows
    "🍋🍌🌻🌕⭐💛🧀🐥🌽🟨🍯🐝🌼🔆👑🟡🐤🎗️🍍🌟"
    # greens
    "🍏🥦🥝🍀🌲🌳🥒🐸🟩💚🦎🌿🐢🫑🌵🍃🥬🐊🌱🍐"
    # blues and cyans
    "💙🌊🐳🦋🧊💎🟦🫐🐬🌀🔵🧿🌐🩵🐟🚙🥶👖📘🪣"
    # purples
    "🍇🍆💜🟪🔮☂️🦄👾🪻😈🟣🎆🌂🦑🪀🧞☔🎹🛍️🪁"
    # neutrals: white, grey, black
    "⚪🤍☁️🥛🐑🦷🌫️⬜🥚🍚🗻🐘🪨🦏🔘⚫🖤🎱🕶️⬛🐈\u200d⬛🌑🎩🦍🕋"
)
EMOJI = tuple(split_symbols(_EMOJI_TEXT))

# Brightness ramps, ordered from the sparsest glyph to the densest
ASCII_RAMP = " .'`^\",:;Il!i><~+_-?][}{1)(|\\/tfjrxnuvczMW&8%B@$"

BLOCK_RAMP = "  ░▒▓█"

BRAILLE_RAMP = " ⠄⠆⠖⠶⠷⠿"

SYMBOL_RAMP = " .:-=+*#%@"

NBSP = "\u00a0"

MOSAIC_CAPTION = "Made with emojipic"
TEXT_CAPTION = "Generated by emojipic"
