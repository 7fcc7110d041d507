# app.py
import streamlit as st
import pandas as pd

from timetable.config import GAConfig
from timetable.data_loader import load_instance, parse_ectt
from timetable.evaluation import evaluate
from timetable.ga import GeneticSolver, is_perfect
from timetable.initial_population import build_initial_population
from run import candidate_to_dataframe, timetable_matrix, format_ranking

# --- CONFIGURACIÓN DE PÁGINA ---
st.set_page_config(page_title="Horarios ECTT - AG", layout="wide", initial_sidebar_state="expanded")

st.markdown("""
    <style>
    .stButton>button {
        width: 100%;
        background-color: #ff4b4b;
        color: white;
        font-weight: bold;
        height: 45px;
    }
    .section-header {
        font-weight: bold;
        border-bottom: 2px solid #ff4b4b;
        padding-bottom: 5px;
        margin-top: 20px;
    }
    </style>
""", unsafe_allow_html=True)


def reset_state():
    for key in ("solver", "population", "history"):
        st.session_state.pop(key, None)


def record(population):
    scores = [c.score() for c in population]
    st.session_state.history.append({
        "generation": st.session_state.solver.generation,
        "best_score": scores[0],
        "avg_score": sum(scores) / len(scores),
    })


# --- SIDEBAR ---
with st.sidebar:
    st.title("🧬 Parámetros")
    uploaded = st.file_uploader("Instancia ECTT", type=["ectt", "txt"])
    defaults = GAConfig()
    candidates_size = st.number_input("Población", min_value=2, value=defaults.candidates_size)
    tournament_size = st.number_input("Tamaño de torneo", min_value=1, value=min(defaults.tournament_size, candidates_size))
    elite_number = st.number_input("Élite", min_value=0, value=defaults.elite_number)
    mutation_weight = st.number_input("Peso de mutación (1/n)", min_value=1, value=defaults.mutation_weight)
    generations = st.number_input("Generaciones por corrida", min_value=1, value=defaults.generations)
    seed_text = st.text_input("Semilla (4 enteros)", value="1 2 3 4")

if uploaded is not None:
    instance = parse_ectt(uploaded.getvalue().decode("utf-8"))
else:
    instance = load_instance("data/toy.ectt")

st.header(f"📋 Instancia {instance.name}")
c1, c2, c3 = st.columns(3)
c1.metric("Eventos", instance.num_events)
c2.metric("Aulas", instance.num_rooms)
c3.metric("Franjas", instance.num_timeslots)

if st.button("🚀 INICIAR (Reset)"):
    reset_state()
    try:
        cfg = GAConfig(
            generations=int(generations),
            candidates_size=int(candidates_size),
            tournament_size=int(tournament_size),
            elite_number=int(elite_number),
            mutation_weight=int(mutation_weight),
            seed=[int(w) for w in seed_text.split()],
        )
        solver = GeneticSolver(instance, cfg, verbose=False)
    except ValueError as e:
        st.error(f"Configuración inválida: {e}")
    else:
        with st.spinner("Generando población inicial..."):
            population = sorted(
                build_initial_population(instance, cfg.candidates_size, solver.rng),
                key=lambda c: c.score(),
            )
        st.session_state.solver = solver
        st.session_state.population = population
        st.session_state.history = []
        record(population)

if "solver" in st.session_state:
    solver = st.session_state.solver
    col_a, col_b = st.columns(2)
    if col_a.button("Siguiente generación") and not is_perfect(st.session_state.population[0]):
        st.session_state.population = solver.step(st.session_state.population)
        record(st.session_state.population)
        solver.finish(st.session_state.population)
    if col_b.button(f"Correr {solver.cfg.generations} generaciones"):
        solver.generations_left = solver.cfg.generations
        with st.spinner("Evolucionando..."):
            while not solver.done(st.session_state.population):
                st.session_state.population = solver.step(st.session_state.population)
                record(st.session_state.population)
        solver.finish(st.session_state.population)

    population = st.session_state.population
    best = population[0]
    eval_res = evaluate(best, instance)

    st.markdown("<div class='section-header'>Mejor candidato</div>", unsafe_allow_html=True)
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Generación", solver.generation)
    m2.metric("Score", best.score())
    m3.metric("Violaciones", best.total_violations)
    m4.metric("No asignados", best.unallocated_event_count)
    if is_perfect(best):
        st.success("Horario sin violaciones y con todos los eventos asignados.")

    tab_grid, tab_list, tab_conf, tab_hist = st.tabs(["Tabla", "Asignaciones", "Conflictos", "Evolución"])
    with tab_grid:
        st.dataframe(timetable_matrix(best, instance), use_container_width=True)
    with tab_list:
        st.dataframe(candidate_to_dataframe(best, instance), use_container_width=True)
    with tab_conf:
        st.dataframe(
            pd.DataFrame([{"restricción": c.value, "violaciones": n} for c, n in eval_res.by_constraint.items()]),
            use_container_width=True,
        )
        for msg in eval_res.messages:
            st.text(msg)
    with tab_hist:
        hist = pd.DataFrame(st.session_state.history).set_index("generation")
        st.line_chart(hist[["best_score", "avg_score"]])
        st.caption(f"Scores de la población: {format_ranking(population)}")
