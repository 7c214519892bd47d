from enum import Enum


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# Selection and template ordering
DIFFICULTY_ORDER = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]


class QuestionType(str, Enum):
    ALBUM_YEAR_GUESS = "album-year-guess"
    SONG_ALBUM_MATCH = "song-album-match"
    FILL_BLANK = "fill-blank"
    GUESS_BY_LYRIC = "guess-by-lyric"
    ODD_ONE_OUT = "odd-one-out"
    AI_VISUAL = "ai-visual"
    SOUND_ALIKE_SNIPPET = "sound-alike-snippet"
    MOOD_MATCH = "mood-match"
    INSPIRATION_MAP = "inspiration-map"
    LIFE_TRIVIA = "life-trivia"
    TIMELINE_ORDER = "timeline-order"
    POPULARITY_MATCH = "popularity-match"
    LONGEST_SONG = "longest-song"
    TRACKLIST_ORDER = "tracklist-order"
    OUTFIT_ERA = "outfit-era"
    LYRIC_MASHUP = "lyric-mashup"
    SPEED_TAP = "speed-tap"
    REVERSE_AUDIO = "reverse-audio"
    ONE_SECOND = "one-second"


class QuestionTheme(str, Enum):
    LYRICS = "lyrics"
    ALBUMS = "albums"
    TIMELINE = "timeline"
    AUDIO = "audio"
    SONGS = "songs"
    CAREER = "career"
    AESTHETIC = "aesthetic"
    OUTFITS = "outfits"
    TOURS = "tours"
    CHARTS = "charts"
    POPULARITY = "popularity"
    EVENTS = "events"
    TRIVIA = "trivia"
    INSPIRATION = "inspiration"
    MOOD = "mood"
    MASHUPS = "mashups"
    TRACKLIST = "tracklist"
    SPEED = "speed"
    VISUALS = "visuals"
