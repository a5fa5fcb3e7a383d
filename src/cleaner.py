import os
import re

import click

SENTENCE_BREAK = re.compile(r"(([.?!][\r\n ])|[\r\n])+")
APOSTROPHES = re.compile(r"[’']")
END_OF_DOCUMENT = re.compile(r"===eod===")
NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9 _]")
# Free standing numbers that cannot be a year (not 4 digits long)
SHORT_OR_LONG_NUMBER = re.compile(r"\s[0-9]{1,3}(?=\s)|\s[0-9]{5,}(?=\s)")
# 4 digit numbers outside 1000 - 2999
NON_YEAR_NUMBER = re.compile(r"\s[03-9][0-9]{3}(?=\s)")
SINGLE_LETTER = re.compile(r"\s[^ai](?=\s)")
REPEATED_NUMERIC = re.compile(r"(\bNUMERIC_VALUE\b)\s+(\1(\s+|$))+")
WHITESPACE = re.compile(r"\s+")

DIACRITICS = str.maketrans({
    **dict.fromkeys("àáâãäå", "a"),
    "ç": "c",
    **dict.fromkeys("èéêë", "e"),
    **dict.fromkeys("ìíîï", "i"),
    "ñ": "n",
    **dict.fromkeys("òóôõöø", "o"),
    **dict.fromkeys("ùúûü", "u"),
    **dict.fromkeys("ýÿ", "y"),
})

MIN_SENTENCE_LENGTH = 15


class Cleaner:
    def __init__(self, min_length=MIN_SENTENCE_LENGTH):
        """
        Normalizes raw text into the training corpus format: one lower case sentence per
        line, letters, digits and underscores only, numbers folded to NUMERIC_VALUE
        (four digit years are kept). Sentences shorter than min_length characters after
        cleaning are dropped.
        """
        self.min_length = min_length

    def clean_text(self, text):
        # Pad so the boundary patterns below see whitespace on both sides
        text = " " + text.lower() + " "
        text = END_OF_DOCUMENT.sub("END_OF_DOCUMENT", text)
        text = APOSTROPHES.sub("", text)
        text = text.translate(DIACRITICS)
        text = NON_ALPHANUMERIC.sub(" ", text)
        text = SHORT_OR_LONG_NUMBER.sub(" NUMERIC_VALUE ", text)
        text = NON_YEAR_NUMBER.sub(" NUMERIC_VALUE ", text)
        text = SINGLE_LETTER.sub(" ", text)
        text = REPEATED_NUMERIC.sub(r"\1 ", text)
        return WHITESPACE.sub(" ", text).strip()

    def split_sentences(self, line):
        """Clean one raw line and return the sentences worth keeping"""
        parts = SENTENCE_BREAK.sub("\n", line).split("\n")
        sentences = (self.clean_text(p) for p in parts if p.strip())
        return [s for s in sentences if len(s) >= self.min_length]

    def clean_file(self, source, dest, report=True):
        """Write the cleaned form of source to dest; returns the number of sentences written"""
        size = os.path.getsize(source)
        written = 0
        read = 0
        with open(source, "rb") as src, open(dest, "w", encoding="utf-8") as out:
            for raw in src:
                read += len(raw)
                for sentence in self.split_sentences(raw.decode("utf-8", errors="replace")):
                    out.write(sentence + "\n")
                    written += 1
                if report:
                    click.echo(f"Progress: {read / max(size, 1):.3%}  \r", nl=False)
        if report:
            click.echo()
        return written
